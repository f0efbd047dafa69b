# Overview: Service-layer operations for pricing; resolves unit prices from the product registry.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import PrivateLabelProduct
from ..money import ZERO
from ..validation import PriceNotConfiguredError


def resolve_unit_price(product_type: str) -> Decimal:
    """
    Unit price of the active registry entry named exactly product_type.

    Returns Decimal("0.00") when no active entry matches. Zero is a
    not-found sentinel, never a real price; callers must reject it
    (see require_unit_price).
    """
    if not product_type:
        return ZERO
    price = (
        db.session.query(PrivateLabelProduct.unit_price)
        .filter(
            PrivateLabelProduct.name == product_type,
            PrivateLabelProduct.is_active.is_(True),
        )
        .scalar()
    )
    if price is None:
        return ZERO
    return Decimal(price)


def require_unit_price(product_type: str, *, label_id: int | None = None) -> Decimal:
    """resolve_unit_price, raising PriceNotConfiguredError for the zero sentinel."""
    price = resolve_unit_price(product_type)
    if price <= 0:
        raise PriceNotConfiguredError(
            f"No price configured for product type '{product_type}'",
            {"product_type": product_type, "label_id": label_id},
        )
    return price


def is_valid_product_type(product_type: str) -> bool:
    """True when an active registry entry carries this name."""
    if not product_type:
        return False
    return (
        db.session.query(PrivateLabelProduct.id)
        .filter(
            PrivateLabelProduct.name == product_type,
            PrivateLabelProduct.is_active.is_(True),
        )
        .first()
        is not None
    )


def active_product_types() -> list[str]:
    rows = (
        db.session.query(PrivateLabelProduct.name)
        .filter(PrivateLabelProduct.is_active.is_(True))
        .order_by(PrivateLabelProduct.name)
        .all()
    )
    return [name for (name,) in rows]
