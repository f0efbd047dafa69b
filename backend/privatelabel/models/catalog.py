from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class PrivateLabelProduct(db.Model):
    """
    Product-type registry used for pricing private-label orders.

    Labels reference an entry by NAME (free text), not by foreign key, so a
    rename or deactivation only takes effect the next time a price is
    resolved. Existing order items keep their price snapshot.
    """
    __tablename__ = "private_label_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "unit_price": money_str(self.unit_price),
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
