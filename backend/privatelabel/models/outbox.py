from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

OUTBOX_STATUSES = ("pending", "processing", "done", "failed")


class OutboxTask(db.Model):
    """
    Deferred side effect (notification, recurring-order generation).

    Rows are written in the same transaction as the state change that
    triggers them and dispatched after commit, so a failed or slow side
    effect never rolls back or blocks the triggering request.
    """
    __tablename__ = "outbox_tasks"
    __table_args__ = (
        db.Index("ix_outbox_tasks_status_available", "status", "available_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, processing, done, failed
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    available_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": self.payload,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "available_at": to_utc_z(self.available_at),
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at),
        }
