# Overview: Service-layer operations for recurring orders; spawns the next cycle's order on shipment.

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import ClientOrder, ClientOrderItem
from ..time_utils import add_months
from . import outbox_service, sequence_service

logger = logging.getLogger(__name__)

INTERVAL_MONTHS = {"monthly": 1, "bimonthly": 2, "quarterly": 3}


def next_delivery_date(delivery_date: date, interval: Optional[str]) -> date:
    """Advance by the schedule interval; unknown or missing intervals mean one month."""
    return add_months(delivery_date, INTERVAL_MONTHS.get(interval or "", 1))


def recurring_production_start(next_delivery: date) -> date:
    """
    next_delivery minus the lead time, deliberately NOT clamped to today
    (unlike the manual create/edit path).
    """
    return next_delivery - timedelta(days=current_app.config.get("PRODUCTION_LEAD_DAYS", 14))


def create_recurring_order(shipped_order: ClientOrder) -> Optional[ClientOrder]:
    """
    Clone a shipped order into the next cycle when the client's recurring
    schedule is enabled. Returns None (not an error) when recurrence is off
    or a successor already exists.

    Items and totals are copied verbatim; prices are not re-resolved.
    """
    client = shipped_order.client
    if client is None:
        logger.warning("Recurring order skipped: client for %s not found", shipped_order.order_number)
        return None
    if not client.recurring_enabled:
        return None

    existing = (
        db.session.query(ClientOrder.id)
        .filter(ClientOrder.parent_order_id == shipped_order.id, ClientOrder.is_recurring.is_(True))
        .first()
    )
    if existing is not None:
        logger.info("Recurring order for %s already exists", shipped_order.order_number)
        return None

    delivery = next_delivery_date(shipped_order.delivery_date, client.recurring_interval)
    order = ClientOrder(
        order_number=sequence_service.next_order_number(),
        client_id=client.id,
        assigned_rep_id=client.assigned_rep_id,
        status="waiting",
        delivery_date=delivery,
        production_start_date=recurring_production_start(delivery),
        items=[
            ClientOrderItem(
                label_id=item.label_id,
                flavor_name=item.flavor_name,
                product_type=item.product_type,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in shipped_order.items
        ],
        subtotal=shipped_order.subtotal,
        discount=shipped_order.discount,
        discount_type=shipped_order.discount_type,
        discount_amount=shipped_order.discount_amount,
        total=shipped_order.total,
        note=f"Recurring order - Auto-generated from {shipped_order.order_number}",
        is_recurring=True,
        parent_order_id=shipped_order.id,
        ship_asap=False,
    )
    db.session.add(order)
    db.session.flush()
    outbox_service.enqueue(outbox_service.ORDER_CREATED, order_id=order.id, is_recurring=True)
    outbox_service.enqueue(outbox_service.RECURRING_ORDER_REP, order_id=order.id)
    db.session.commit()
    logger.info(
        "Created recurring order %s from %s (delivery %s)",
        order.order_number, shipped_order.order_number, delivery.isoformat(),
    )
    return order


def handle_order_shipped(order_id: int) -> Optional[ClientOrder]:
    """
    Outbox entry point. Failures are logged and swallowed: the shipment
    itself is already committed and must never be affected.
    """
    try:
        order = db.session.get(ClientOrder, order_id)
        if order is None or order.status != "shipped":
            return None
        return create_recurring_order(order)
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create recurring order for order %s", order_id)
        return None
