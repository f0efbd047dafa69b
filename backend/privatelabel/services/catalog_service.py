# Overview: Service-layer operations for the private-label product registry; encapsulates business logic and database work.

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Label, PrivateLabelProduct
from ..money import round2
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    StateConflictError,
    ValidationError,
    validate_payload,
)

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit_price", "description", "is_active"},
    required_on_create={"name", "unit_price"},
)

SEED_PRODUCTS = (
    {"name": "BIOMAX", "unit_price": Decimal("1.75"), "description": "BIOMAX private-label gummies"},
    {"name": "Rosin", "unit_price": Decimal("2.25"), "description": "Rosin private-label gummies"},
)


def _enforce_rules(patch: dict) -> None:
    if "unit_price" in patch:
        price = patch["unit_price"]
        if price is None or price < 0:
            raise ValidationError("unit_price must be >= 0", {"field": "unit_price"})
        patch["unit_price"] = round2(price)


def _ensure_unique_name(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(PrivateLabelProduct.id).filter(PrivateLabelProduct.name == name)
    if exclude_id is not None:
        q = q.filter(PrivateLabelProduct.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Product '{name}' already exists", {"name": name})


def list_products(*, active_only: bool = False) -> dict:
    q = db.session.query(PrivateLabelProduct)
    if active_only:
        q = q.filter(PrivateLabelProduct.is_active.is_(True))
    products = q.order_by(PrivateLabelProduct.name).all()
    return {"total": len(products), "products": [p.to_dict() for p in products]}


def get_product(product_id: int) -> PrivateLabelProduct:
    product = db.session.get(PrivateLabelProduct, product_id)
    if product is None:
        raise NotFoundError("Product not found", {"product_id": product_id})
    return product


def create_product(payload: dict) -> PrivateLabelProduct:
    patch = validate_payload(model=PrivateLabelProduct, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _enforce_rules(patch)
    _ensure_unique_name(patch["name"])

    product = PrivateLabelProduct(**patch)
    db.session.add(product)
    db.session.commit()
    logger.info("Created private-label product %s at %s", product.name, product.unit_price)
    return product


def update_product(product_id: int, payload: dict) -> PrivateLabelProduct:
    product = get_product(product_id)
    patch = validate_payload(model=PrivateLabelProduct, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _enforce_rules(patch)
    if "name" in patch:
        _ensure_unique_name(patch["name"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def toggle_product(product_id: int) -> PrivateLabelProduct:
    """Flip is_active; inactive products stop pricing new orders."""
    product = get_product(product_id)
    product.is_active = not product.is_active
    db.session.commit()
    logger.info("Product %s is now %s", product.name, "active" if product.is_active else "inactive")
    return product


def delete_product(product_id: int) -> None:
    """Hard delete, refused while any label names this product type."""
    product = get_product(product_id)
    in_use = (
        db.session.query(db.func.count(Label.id))
        .filter(Label.product_type == product.name)
        .scalar()
    )
    if in_use:
        raise StateConflictError(
            "Cannot delete a product that labels still reference; deactivate it instead",
            {"product_id": product.id, "label_count": in_use},
        )
    db.session.delete(product)
    db.session.commit()


def seed_products() -> list[PrivateLabelProduct]:
    """Upsert the default registry entries. Idempotent."""
    seeded = []
    for entry in SEED_PRODUCTS:
        product = db.session.query(PrivateLabelProduct).filter_by(name=entry["name"]).first()
        if product is None:
            product = PrivateLabelProduct(**entry, is_active=True)
            db.session.add(product)
        else:
            product.unit_price = entry["unit_price"]
            product.description = entry["description"]
        seeded.append(product)
    db.session.commit()
    return seeded
