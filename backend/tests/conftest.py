"""
Pytest fixtures for private-label backend tests.

Provides the test app (in-memory SQLite, suppressed mail, manual outbox
dispatch), a fresh database per test, and directory/client/label fixtures.
"""

from datetime import timedelta

import pytest

from privatelabel import create_app
from privatelabel.extensions import db
from privatelabel.models import (
    Admin,
    Label,
    LabelImage,
    PrivateLabelClient,
    Rep,
    Store,
    TERMINAL_LABEL_STAGE,
)
from privatelabel.services import catalog_service, order_service
from privatelabel.time_utils import today, utcnow


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_DEFAULT_SENDER': 'Private Label <noreply@test.local>',
        'FRONTEND_URL': 'http://frontend.test',
        'MEDIA_ROOT': str(tmp_path_factory.mktemp('media')),
        'OUTBOX_DISPATCH_MODE': 'manual',
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Drop identity-map state left by the previous test
        db.session.remove()

        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def products(db_session):
    """Seed the default registry (BIOMAX 1.75, Rosin 2.25)."""
    return {p.name: p for p in catalog_service.seed_products()}


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Green Leaf", address="12 Main St", city="Portland", state="OR", zip="97201")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Blue Door Dispensary", city="Salem", state="OR")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def rep(db_session):
    rep = Rep(name="Jamie Rep", email="jamie@reps.test")
    db_session.add(rep)
    db_session.commit()
    return rep


@pytest.fixture(scope='function')
def admin(db_session):
    admin = Admin(name="Ops Admin", email="ops@admins.test")
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture(scope='function')
def pl_client(db_session, store, rep):
    """Onboarding client for the Green Leaf store."""
    client = PrivateLabelClient(
        store_id=store.id,
        status="onboarding",
        contact_email="owner@greenleaf.test",
        assigned_rep_id=rep.id,
    )
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture(scope='function')
def other_client(db_session, other_store, rep):
    client = PrivateLabelClient(
        store_id=other_store.id,
        status="active",
        contact_email="owner@bluedoor.test",
        assigned_rep_id=rep.id,
    )
    db_session.add(client)
    db_session.commit()
    return client


def make_label(client, *, flavor="Mango", product_type="BIOMAX", stage=None, with_image=False):
    """Create a label for client, optionally forced to a stage and given artwork."""
    label = Label(client_id=client.id, flavor_name=flavor, product_type=product_type)
    if stage:
        label.record_stage(stage)
    if with_image:
        label.images.append(
            LabelImage(
                position=0,
                url="/media/private-labels/art.png",
                secure_url="/media/private-labels/art.png",
                public_id="private-labels/art.png",
                format="png",
                bytes=4,
                original_filename="art.png",
                uploaded_at=utcnow(),
            )
        )
    db.session.add(label)
    db.session.commit()
    return label


@pytest.fixture(scope='function')
def ready_label(db_session, pl_client, products):
    """BIOMAX label already at ready_for_production."""
    return make_label(pl_client, flavor="Mango", product_type="BIOMAX", stage=TERMINAL_LABEL_STAGE)


@pytest.fixture(scope='function')
def ready_rosin_label(db_session, pl_client, products):
    return make_label(pl_client, flavor="Blueberry", product_type="Rosin", stage=TERMINAL_LABEL_STAGE)


def make_order(client, label, *, quantity=10, delivery_in_days=30, **extra):
    """Create a waiting order through the service layer."""
    payload = {
        "client_id": client.id,
        "delivery_date": (today() + timedelta(days=delivery_in_days)).isoformat(),
        "items": [{"label_id": label.id, "quantity": quantity}],
    }
    payload.update(extra)
    return order_service.create_order(payload)
