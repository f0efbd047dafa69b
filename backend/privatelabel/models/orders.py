from __future__ import annotations

from datetime import date, timedelta

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z, today as utc_today

# Fulfillment pipeline (must match lifecycle_service)
ORDER_STATUSES = (
    "waiting",
    "stage_1",
    "stage_2",
    "stage_3",
    "stage_4",
    "ready_to_ship",
    "shipped",
    "cancelled",
)
IN_PRODUCTION_STATUSES = ("stage_1", "stage_2", "stage_3", "stage_4")
DISCOUNT_TYPES = ("flat", "percentage")
ORDER_NUMBER_PREFIX = "PL"

# emails_sent key -> column
EMAIL_FLAGS = {
    "order_created_notification": "email_order_created_sent",
    "production_started_notification": "email_production_started_sent",
    "seven_day_reminder": "email_seven_day_reminder_sent",
    "ready_to_ship_notification": "email_ready_to_ship_sent",
    "shipped_notification": "email_shipped_sent",
}


class ClientOrder(db.Model):
    """
    Private-label production order.

    Money columns are Decimal quantized to cents. Items freeze the label
    name/type and the unit price at the moment they were priced, so later
    registry changes never rewrite history.

    The email_* flags are at-most-once guards for lifecycle notifications;
    a flag only flips after the corresponding send succeeded.
    """
    __tablename__ = "client_orders"
    __table_args__ = (
        db.Index("ix_client_orders_status_production_start", "status", "production_start_date"),
        db.Index("ix_client_orders_status_delivery", "status", "delivery_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    client_id = db.Column(db.Integer, db.ForeignKey("private_label_clients.id"), nullable=False, index=True)
    assigned_rep_id = db.Column(db.Integer, db.ForeignKey("reps.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="waiting", index=True)
    delivery_date = db.Column(db.Date, nullable=False)
    production_start_date = db.Column(db.Date, nullable=False)
    actual_ship_date = db.Column(db.DateTime(timezone=True), nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # Raw discount input: a flat amount or a percentage
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="flat")
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    parent_order_id = db.Column(db.Integer, db.ForeignKey("client_orders.id"), nullable=True, index=True)
    ship_asap = db.Column(db.Boolean, nullable=False, default=False)
    tracking_number = db.Column(db.String(120), nullable=True)

    email_order_created_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_production_started_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_seven_day_reminder_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_ready_to_ship_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_shipped_sent = db.Column(db.Boolean, nullable=False, default=False)

    # Tagged actor reference: "admin" | "rep"
    created_by_type = db.Column(db.String(8), nullable=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("PrivateLabelClient", backref=db.backref("orders", lazy="dynamic"))
    assigned_rep = db.relationship("Rep")
    parent_order = db.relationship("ClientOrder", remote_side=[id], backref="child_orders")
    items = db.relationship(
        "ClientOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ClientOrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def can_edit(self) -> bool:
        return self.status == "waiting"

    def is_in_production(self) -> bool:
        return self.status in IN_PRODUCTION_STATUSES

    @staticmethod
    def calculate_production_start(delivery_date: date, *, lead_days: int = 14, today: date | None = None) -> date:
        """
        delivery_date minus the production lead time, never earlier than today.

        Used on manual create/edit only; recurring orders derive their start
        without the clamp.
        """
        start = delivery_date - timedelta(days=lead_days)
        floor = today or utc_today()
        return floor if start < floor else start

    @property
    def emails_sent(self) -> dict:
        return {key: bool(getattr(self, column)) for key, column in EMAIL_FLAGS.items()}

    @property
    def created_by(self) -> dict | None:
        if not self.created_by_type:
            return None
        return {"kind": self.created_by_type, "id": self.created_by_id}

    def to_dict(self, *, include_items: bool = True):
        client = self.client
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "client_id": self.client_id,
            "client": (
                {
                    "id": client.id,
                    "status": client.status,
                    "store": client.store.to_dict() if client.store else None,
                    "contact_email": client.contact_email,
                }
                if client else None
            ),
            "assigned_rep_id": self.assigned_rep_id,
            "assigned_rep": (
                {"id": self.assigned_rep.id, "name": self.assigned_rep.name, "email": self.assigned_rep.email}
                if self.assigned_rep else None
            ),
            "status": self.status,
            "delivery_date": to_iso_date(self.delivery_date),
            "production_start_date": to_iso_date(self.production_start_date),
            "actual_ship_date": to_utc_z(self.actual_ship_date),
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "discount_type": self.discount_type,
            "discount_amount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "note": self.note,
            "is_recurring": self.is_recurring,
            "parent_order_id": self.parent_order_id,
            "ship_asap": self.ship_asap,
            "tracking_number": self.tracking_number,
            "emails_sent": self.emails_sent,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ClientOrderItem(db.Model):
    """Order line with a frozen snapshot of the label and its unit price."""
    __tablename__ = "client_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_client_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("client_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    label_id = db.Column(db.Integer, db.ForeignKey("labels.id"), nullable=False, index=True)

    flavor_name = db.Column(db.String(200), nullable=False)
    product_type = db.Column(db.String(120), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    order = db.relationship("ClientOrder", back_populates="items")
    label = db.relationship("Label")

    def to_dict(self):
        return {
            "id": self.id,
            "label_id": self.label_id,
            "flavor_name": self.flavor_name,
            "product_type": self.product_type,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
        }
