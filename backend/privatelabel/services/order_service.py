# Overview: Service-layer operations for client orders; encapsulates business logic and database work.

"""
Client order aggregate.

Creation and item edits run the same pipeline:
    client exists -> items non-empty -> per item: label exists, label is
    ready_for_production, label belongs to the client, quantity > 0, unit
    price resolves -> line totals -> subtotal -> discount -> total

Everything is validated before the first write; the first offending item
aborts the whole request.

Status side effects (notifications, recurring order) are queued in the
outbox inside the same transaction as the status change.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    ClientOrder,
    ClientOrderItem,
    DISCOUNT_TYPES,
    Label,
    ORDER_NUMBER_PREFIX,
    PrivateLabelClient,
    Store,
    TERMINAL_LABEL_STAGE,
)
from ..money import ZERO, round2, to_decimal
from ..time_utils import parse_iso_date, utcnow
from ..validation import (
    InvalidDiscountError,
    LabelNotReadyError,
    NotFoundError,
    OrderLockedError,
    OwnershipMismatchError,
    StateConflictError,
    ValidationError,
    normalize_pagination,
    optional_text,
    parse_bool,
    parse_int,
)
from . import lifecycle_service, outbox_service, pricing_service, sequence_service
from .actor_service import ActorRef, resolve_actor
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

DELETABLE_STATUSES = ("waiting", "cancelled")


# =============================================================================
# Pure helpers
# =============================================================================


def production_lead_days() -> int:
    return current_app.config.get("PRODUCTION_LEAD_DAYS", 14)


def calculate_production_start(delivery_date: date, *, today: date | None = None) -> date:
    """delivery_date minus the lead time, clamped to today (manual create/edit path)."""
    return ClientOrder.calculate_production_start(
        delivery_date, lead_days=production_lead_days(), today=today
    )


def compute_discount(subtotal: Decimal, discount, discount_type: str) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns (discount, discount_amount, total).

    percentage: discount within [0, 100]; amount = round2(subtotal * d / 100)
    flat:       discount >= 0; amount is the discount itself and may exceed
                the subtotal (total is floored at zero)
    """
    if discount_type not in DISCOUNT_TYPES:
        raise InvalidDiscountError(
            f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}",
            {"discount_type": discount_type},
        )
    value = to_decimal(discount if discount is not None else 0, "discount")
    # Stored in Numeric(12, 2); edits recompute from the stored value
    if value != round2(value):
        raise InvalidDiscountError(
            "Discount can have at most 2 decimal places",
            {"discount": str(value)},
        )

    if discount_type == "percentage":
        if value < 0 or value > 100:
            raise InvalidDiscountError(
                "Percentage discount must be between 0 and 100",
                {"discount": str(value)},
            )
        amount = round2(subtotal * value / Decimal(100))
    else:
        if value < 0:
            raise InvalidDiscountError("Flat discount cannot be negative", {"discount": str(value)})
        amount = round2(value)

    total = round2(max(ZERO, subtotal - amount))
    return round2(value), amount, total


def _parse_delivery_date(value) -> date:
    if value in (None, ""):
        raise ValidationError("delivery_date is required", {"field": "delivery_date"})
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError("delivery_date must be an ISO-8601 date", {"field": "delivery_date"})
    if parsed is None:
        raise ValidationError("delivery_date is required", {"field": "delivery_date"})
    return parsed


def build_items(client_id: int, item_requests) -> tuple[list[ClientOrderItem], Decimal]:
    """
    Validate item requests and price them. Returns (unsaved items, subtotal).
    Raises on the first offending item.
    """
    if not isinstance(item_requests, list) or not item_requests:
        raise ValidationError("Order must contain at least one item", {"field": "items"})

    items: list[ClientOrderItem] = []
    for index, req in enumerate(item_requests):
        if not isinstance(req, dict):
            raise ValidationError("Each item must be an object", {"item_index": index})
        if req.get("label_id") is None:
            raise ValidationError("label_id is required", {"item_index": index, "field": "label_id"})
        label_id = parse_int(req.get("label_id"), "label_id")

        label = db.session.get(Label, label_id)
        if label is None:
            raise NotFoundError(f"Label {label_id} not found", {"item_index": index, "label_id": label_id})
        if label.current_stage != TERMINAL_LABEL_STAGE:
            raise LabelNotReadyError(
                f"Label '{label.flavor_name}' is not ready for production",
                {"item_index": index, "label_id": label.id, "current_stage": label.current_stage},
            )
        if label.client_id != client_id:
            raise OwnershipMismatchError(
                f"Label '{label.flavor_name}' does not belong to this client",
                {"item_index": index, "label_id": label.id, "client_id": client_id},
            )

        if req.get("quantity") is None:
            raise ValidationError("quantity is required", {"item_index": index, "field": "quantity"})
        quantity = parse_int(req.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError(
                "Quantity must be greater than 0",
                {"item_index": index, "label_id": label.id, "quantity": quantity},
            )

        unit_price = pricing_service.require_unit_price(label.product_type, label_id=label.id)
        items.append(
            ClientOrderItem(
                label_id=label.id,
                flavor_name=label.flavor_name,
                product_type=label.product_type,
                quantity=quantity,
                unit_price=unit_price,
                line_total=round2(unit_price * quantity),
            )
        )

    subtotal = round2(sum((item.line_total for item in items), ZERO))
    return items, subtotal


# =============================================================================
# Queries
# =============================================================================


def get_order(order_id: int) -> ClientOrder:
    order = db.session.get(ClientOrder, order_id)
    if order is None:
        raise NotFoundError("Order not found", {"order_id": order_id})
    return order


def order_detail(order: ClientOrder) -> dict:
    """Single-order view; created_by carries the actor's name and email when it still resolves."""
    data = order.to_dict()
    if order.created_by:
        creator = resolve_actor(ActorRef(**order.created_by))
        if creator:
            data["created_by"] = creator
    return data


def _get_order_for_update(order_id: int) -> ClientOrder:
    order = lock_for_update(db.session.query(ClientOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order not found", {"order_id": order_id})
    return order


def list_orders(
    *,
    client_id: int | None = None,
    status: str | None = None,
    rep_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
    page=None,
    limit=None,
) -> dict:
    """
    Filtered, newest-first page of orders.

    status is a comma-separated list; start_date/end_date bound the
    delivery date (inclusive) and must be given together; search matches an
    order-number prefix when it starts with "PL-", otherwise the store name.
    """
    page, limit = normalize_pagination(page, limit, default_limit=20)

    q = db.session.query(ClientOrder)
    if client_id:
        q = q.filter(ClientOrder.client_id == client_id)
    if status:
        statuses = [lifecycle_service.validate_status(s.strip()) for s in status.split(",") if s.strip()]
        if statuses:
            q = q.filter(ClientOrder.status.in_(statuses))
    if rep_id:
        q = q.filter(ClientOrder.assigned_rep_id == rep_id)

    if start_date or end_date:
        if not (start_date and end_date):
            raise ValidationError("start_date and end_date must be provided together")
        try:
            start, end = parse_iso_date(start_date), parse_iso_date(end_date)
        except (TypeError, ValueError):
            raise ValidationError("start_date and end_date must be ISO-8601 dates")
        q = q.filter(ClientOrder.delivery_date >= start, ClientOrder.delivery_date <= end)

    if search and search.strip():
        term = search.strip()
        if term.upper().startswith(f"{ORDER_NUMBER_PREFIX}-"):
            q = q.filter(ClientOrder.order_number.ilike(f"{term}%"))
        else:
            q = (
                q.join(PrivateLabelClient, ClientOrder.client_id == PrivateLabelClient.id)
                .join(Store, PrivateLabelClient.store_id == Store.id)
                .filter(Store.name.ilike(f"%{term}%"))
            )

    total = q.count()
    orders = (
        q.order_by(ClientOrder.created_at.desc(), ClientOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "total": total,
        "orders": [o.to_dict() for o in orders],
        "page": page,
        "limit": limit,
    }


# =============================================================================
# Commands
# =============================================================================


def create_order(payload: dict, *, actor: ActorRef | None = None) -> ClientOrder:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("client_id") is None:
        raise ValidationError("client_id is required", {"field": "client_id"})
    client_id = parse_int(payload.get("client_id"), "client_id")

    def _op() -> ClientOrder:
        client = db.session.get(PrivateLabelClient, client_id)
        if client is None:
            raise NotFoundError("Client not found", {"client_id": client_id})

        delivery_date = _parse_delivery_date(payload.get("delivery_date"))
        items, subtotal = build_items(client.id, payload.get("items"))
        discount, discount_amount, total = compute_discount(
            subtotal, payload.get("discount", 0), payload.get("discount_type") or "flat"
        )
        note = optional_text(payload.get("note"), "note")
        ship_asap = parse_bool(payload.get("ship_asap", False), "ship_asap")

        order = ClientOrder(
            order_number=sequence_service.next_order_number(),
            client_id=client.id,
            assigned_rep_id=client.assigned_rep_id,
            status="waiting",
            delivery_date=delivery_date,
            production_start_date=calculate_production_start(delivery_date),
            subtotal=subtotal,
            discount=discount,
            discount_type=payload.get("discount_type") or "flat",
            discount_amount=discount_amount,
            total=total,
            note=note,
            ship_asap=ship_asap,
            is_recurring=False,
            created_by_type=actor.kind if actor else None,
            created_by_id=actor.id if actor else None,
            items=items,
        )
        db.session.add(order)
        db.session.flush()
        outbox_service.enqueue(outbox_service.ORDER_CREATED, order_id=order.id, is_recurring=False)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Created order %s for client %s (total %s)", order.order_number, client_id, order.total)
    return order


def update_order(order_id: int, payload: dict) -> ClientOrder:
    """Edit a waiting order; anything past waiting is locked."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    def _op() -> ClientOrder:
        order = _get_order_for_update(order_id)
        if not order.can_edit():
            raise OrderLockedError(
                "Order can only be edited while waiting",
                {"order_id": order.id, "status": order.status},
            )

        if "delivery_date" in payload:
            order.delivery_date = _parse_delivery_date(payload["delivery_date"])
            order.production_start_date = calculate_production_start(order.delivery_date)
        if "ship_asap" in payload:
            order.ship_asap = parse_bool(payload["ship_asap"], "ship_asap")
        if "note" in payload:
            order.note = optional_text(payload["note"], "note")

        subtotal = Decimal(order.subtotal)
        if "items" in payload:
            items, subtotal = build_items(order.client_id, payload["items"])
            order.items = items
            order.subtotal = subtotal

        if "items" in payload or "discount" in payload or "discount_type" in payload:
            discount_type = payload.get("discount_type") or order.discount_type
            raw_discount = payload["discount"] if "discount" in payload else order.discount
            discount, discount_amount, total = compute_discount(subtotal, raw_discount, discount_type)
            order.discount = discount
            order.discount_type = discount_type
            order.discount_amount = discount_amount
            order.total = total

        db.session.commit()
        return order

    return run_with_retry(_op)


def apply_status(order: ClientOrder, new_status: str, *, tracking_number: str | None = None) -> str:
    """
    Set the order's status (no commit) and queue the transition's side
    effects. Returns the previous status.

    -> stage_1        production-started email (only when entering)
    -> ready_to_ship  ready-to-ship email (only when entering)
    -> shipped        ship date, tracking, shipped email, recurring order;
                      re-applying shipped only updates the tracking number
    """
    previous = order.status
    lifecycle_service.ensure_order_transition(previous, new_status)
    order.status = new_status

    if new_status == "stage_1" and previous != "stage_1":
        outbox_service.enqueue(outbox_service.PRODUCTION_STARTED, order_id=order.id)
    elif new_status == "ready_to_ship" and previous != "ready_to_ship":
        outbox_service.enqueue(outbox_service.READY_TO_SHIP, order_id=order.id)
    elif new_status == "shipped":
        if tracking_number:
            order.tracking_number = tracking_number
        if previous != "shipped":
            order.actual_ship_date = utcnow()
            outbox_service.enqueue(outbox_service.ORDER_SHIPPED, order_id=order.id)
            outbox_service.enqueue(outbox_service.GENERATE_RECURRING_ORDER, order_id=order.id)
    return previous


def update_status(order_id: int, status, *, tracking_number=None) -> ClientOrder:
    lifecycle_service.validate_status(status)
    tracking_number = optional_text(tracking_number, "tracking_number", max_length=120)

    def _op() -> ClientOrder:
        order = _get_order_for_update(order_id)
        previous = apply_status(order, status, tracking_number=tracking_number)
        db.session.commit()
        logger.info("Order %s status %s -> %s", order.order_number, previous, status)
        return order

    return run_with_retry(_op)


def push_to_production(order_id: int) -> ClientOrder:
    """Manual shortcut: waiting -> stage_1 (used for ship_asap orders)."""
    def _op() -> ClientOrder:
        order = _get_order_for_update(order_id)
        if order.status != "waiting":
            raise StateConflictError(
                "Only waiting orders can be pushed to production",
                {"order_id": order.id, "status": order.status},
            )
        apply_status(order, "stage_1")
        db.session.commit()
        logger.info("Order %s pushed to production", order.order_number)
        return order

    return run_with_retry(_op)


def update_delivery_date(order_id: int, delivery_date) -> ClientOrder:
    """Change delivery date; the production start moves only while waiting."""
    parsed = _parse_delivery_date(delivery_date)

    def _op() -> ClientOrder:
        order = _get_order_for_update(order_id)
        order.delivery_date = parsed
        if order.status == "waiting":
            order.production_start_date = calculate_production_start(parsed)
        db.session.commit()
        return order

    return run_with_retry(_op)


def toggle_ship_asap(order_id: int, ship_asap=None) -> ClientOrder:
    """Set ship_asap explicitly, or flip it when no value is given."""
    value = None if ship_asap is None else parse_bool(ship_asap, "ship_asap")

    def _op() -> ClientOrder:
        order = _get_order_for_update(order_id)
        order.ship_asap = (not order.ship_asap) if value is None else value
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_order(order_id: int) -> None:
    """
    Hard delete, allowed only for orders that never entered production
    (waiting) or were cancelled.
    """
    order = get_order(order_id)
    if order.is_in_production():
        raise StateConflictError(
            "Cannot delete an order that is in production",
            {"order_id": order.id, "status": order.status},
        )
    if order.status not in DELETABLE_STATUSES:
        raise StateConflictError(
            f"Cannot delete an order that is {order.status}",
            {"order_id": order.id, "status": order.status},
        )

    for child in order.child_orders:
        child.parent_order_id = None
    db.session.delete(order)
    db.session.commit()
    logger.info("Deleted order %s", order.order_number)
