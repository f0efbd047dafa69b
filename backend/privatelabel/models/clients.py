from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

CLIENT_STATUSES = ("onboarding", "active")
RECURRING_INTERVALS = ("monthly", "bimonthly", "quarterly")


class PrivateLabelClient(db.Model):
    """
    A store enrolled in the private-label program (one client per store).

    status starts at "onboarding" and is promoted to "active" the first time
    any of the client's labels reaches ready_for_production.
    """
    __tablename__ = "private_label_clients"
    __table_args__ = (
        db.CheckConstraint(
            "NOT recurring_enabled OR recurring_interval IS NOT NULL",
            name="ck_private_label_clients_interval_when_enabled",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="onboarding", index=True)  # onboarding, active
    contact_email = db.Column(db.String(255), nullable=False)
    assigned_rep_id = db.Column(db.Integer, db.ForeignKey("reps.id"), nullable=False, index=True)

    # Recurring schedule: interval must be set whenever enabled
    recurring_enabled = db.Column(db.Boolean, nullable=False, default=False)
    recurring_interval = db.Column(db.String(16), nullable=True)  # monthly, bimonthly, quarterly

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store")
    assigned_rep = db.relationship("Rep")
    labels = db.relationship(
        "Label",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Label.id",
    )

    @property
    def recurring_schedule(self) -> dict:
        return {"enabled": self.recurring_enabled, "interval": self.recurring_interval}

    def to_dict(self, *, label_counts: dict | None = None):
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "store": self.store.to_dict() if self.store else None,
            "status": self.status,
            "contact_email": self.contact_email,
            "assigned_rep_id": self.assigned_rep_id,
            "assigned_rep": (
                {"id": self.assigned_rep.id, "name": self.assigned_rep.name, "email": self.assigned_rep.email}
                if self.assigned_rep else None
            ),
            "recurring_schedule": self.recurring_schedule,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if label_counts is not None:
            data["label_counts"] = label_counts
        return data
