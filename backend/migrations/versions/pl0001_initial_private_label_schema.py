"""initial private label schema

Revision ID: pl0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the private-label workflow schema:
- stores, reps, admins: directory tables referenced by the workflow
- private_label_products: product-type registry used for pricing
- private_label_clients: one enrolled client per store
- labels (+ label_stage_history, label_images): design approval pipeline
- client_orders (+ client_order_items): production orders with frozen item snapshots
- counters: atomic order-number sequence
- outbox_tasks: deferred notification / recurring-order work
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'pl0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # Directory
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('state', sa.String(length=64), nullable=True),
        sa.Column('zip', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stores_name', 'stores', ['name'])

    op.create_table(
        'reps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Product registry
    # ============================================================================
    op.create_table(
        'private_label_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_private_label_products_is_active', 'private_label_products', ['is_active'])

    # ============================================================================
    # Clients
    # ============================================================================
    op.create_table(
        'private_label_clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='onboarding'),
        sa.Column('contact_email', sa.String(length=255), nullable=False),
        sa.Column('assigned_rep_id', sa.Integer(), nullable=False),
        sa.Column('recurring_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurring_interval', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['assigned_rep_id'], ['reps.id']),
        sa.CheckConstraint(
            'NOT recurring_enabled OR recurring_interval IS NOT NULL',
            name='ck_private_label_clients_interval_when_enabled',
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_private_label_clients_status', 'private_label_clients', ['status'])
    op.create_index('ix_private_label_clients_assigned_rep_id', 'private_label_clients', ['assigned_rep_id'])

    # ============================================================================
    # Labels
    # ============================================================================
    op.create_table(
        'labels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('flavor_name', sa.String(length=200), nullable=False),
        sa.Column('product_type', sa.String(length=120), nullable=False),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('current_stage', sa.String(length=32), nullable=False,
                  server_default='design_in_progress'),
        sa.Column('approval_token_hash', sa.String(length=64), nullable=True),
        sa.Column('approval_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['client_id'], ['private_label_clients.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('approval_token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_labels_client_id', 'labels', ['client_id'])
    op.create_index('ix_labels_product_type', 'labels', ['product_type'])
    op.create_index('ix_labels_current_stage', 'labels', ['current_stage'])
    op.create_index('ix_labels_client_stage', 'labels', ['client_id', 'current_stage'])

    op.create_table(
        'label_stage_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('label_id', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=32), nullable=False),
        sa.Column('changed_by_type', sa.String(length=8), nullable=True),
        sa.Column('changed_by_id', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['label_id'], ['labels.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "(changed_by_type IS NULL AND changed_by_id IS NULL) OR "
            "(changed_by_type IN ('admin', 'rep') AND changed_by_id IS NOT NULL)",
            name='ck_label_stage_history_actor',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_label_stage_history_label_id', 'label_stage_history', ['label_id'])

    op.create_table(
        'label_images',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('label_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('url', sa.String(length=500), nullable=False),
        sa.Column('secure_url', sa.String(length=500), nullable=False),
        sa.Column('public_id', sa.String(length=255), nullable=False),
        sa.Column('format', sa.String(length=16), nullable=True),
        sa.Column('bytes', sa.Integer(), nullable=True),
        sa.Column('original_filename', sa.String(length=255), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['label_id'], ['labels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_label_images_label_id', 'label_images', ['label_id'])

    # ============================================================================
    # Orders
    # ============================================================================
    op.create_table(
        'client_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('assigned_rep_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('production_start_date', sa.Date(), nullable=False),
        sa.Column('actual_ship_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='flat'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_order_id', sa.Integer(), nullable=True),
        sa.Column('ship_asap', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tracking_number', sa.String(length=120), nullable=True),
        sa.Column('email_order_created_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_production_started_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_seven_day_reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_ready_to_ship_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_shipped_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_type', sa.String(length=8), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['client_id'], ['private_label_clients.id']),
        sa.ForeignKeyConstraint(['assigned_rep_id'], ['reps.id']),
        sa.ForeignKeyConstraint(['parent_order_id'], ['client_orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_client_orders_client_id', 'client_orders', ['client_id'])
    op.create_index('ix_client_orders_assigned_rep_id', 'client_orders', ['assigned_rep_id'])
    op.create_index('ix_client_orders_status', 'client_orders', ['status'])
    op.create_index('ix_client_orders_parent_order_id', 'client_orders', ['parent_order_id'])
    op.create_index('ix_client_orders_created_at', 'client_orders', ['created_at'])
    op.create_index('ix_client_orders_status_production_start', 'client_orders',
                    ['status', 'production_start_date'])
    op.create_index('ix_client_orders_status_delivery', 'client_orders', ['status', 'delivery_date'])

    op.create_table(
        'client_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('label_id', sa.Integer(), nullable=False),
        sa.Column('flavor_name', sa.String(length=200), nullable=False),
        sa.Column('product_type', sa.String(length=120), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['client_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['label_id'], ['labels.id']),
        sa.CheckConstraint('quantity >= 1', name='ck_client_order_items_quantity_positive'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_client_order_items_order_id', 'client_order_items', ['order_id'])
    op.create_index('ix_client_order_items_label_id', 'client_order_items', ['label_id'])

    # ============================================================================
    # Sequences and outbox
    # ============================================================================
    op.create_table(
        'counters',
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('name')
    )

    op.create_table(
        'outbox_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('available_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_outbox_tasks_kind', 'outbox_tasks', ['kind'])
    op.create_index('ix_outbox_tasks_status_available', 'outbox_tasks', ['status', 'available_at'])


def downgrade():
    op.drop_table('outbox_tasks')
    op.drop_table('counters')
    op.drop_table('client_order_items')
    op.drop_table('client_orders')
    op.drop_table('label_images')
    op.drop_table('label_stage_history')
    op.drop_table('labels')
    op.drop_table('private_label_clients')
    op.drop_table('private_label_products')
    op.drop_table('admins')
    op.drop_table('reps')
    op.drop_table('stores')
