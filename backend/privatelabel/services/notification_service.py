# Overview: Service-layer operations for notifications; at-most-once lifecycle emails for orders and labels.

"""
Lifecycle notifications.

Every order email is guarded by one of the order's email_* flags:

1. flag already set      -> no-op (returns True)
2. otherwise             -> load client/store/rep details, send
3. send succeeded        -> set the flag
4. send failed           -> leave the flag unset so a later attempt can retry

Return values: True (sent or already sent), False (send failed, retryable),
None (nothing to send, e.g. the order or a recipient no longer exists).
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import ClientOrder, Label
from ..money import money_str
from ..time_utils import utcnow
from . import email_service

logger = logging.getLogger(__name__)


def _load_order(order_id: int) -> Optional[ClientOrder]:
    order = db.session.get(ClientOrder, order_id)
    if order is None:
        logger.warning("Notification skipped: order %s no longer exists", order_id)
    return order


def _mark_sent(order: ClientOrder, column: str) -> None:
    # Plain UPDATE: flags are independent of the order's version counter
    db.session.execute(
        update(ClientOrder)
        .where(ClientOrder.id == order.id)
        .values({column: True})
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(order)


def _order_context(order: ClientOrder) -> dict:
    client = order.client
    store = client.store if client else None
    rep = order.assigned_rep or (client.assigned_rep if client else None)
    return {
        "order_number": order.order_number,
        "client_name": store.name if store else "Valued Client",
        "contact_email": client.contact_email if client else None,
        "rep_name": rep.name if rep else "your rep",
        "rep_email": rep.email if rep else None,
        "delivery_date": order.delivery_date.strftime("%B %d, %Y") if order.delivery_date else "",
        "production_start_date": (
            order.production_start_date.strftime("%B %d, %Y") if order.production_start_date else ""
        ),
        "items": [
            {
                "flavor_name": item.flavor_name,
                "product_type": item.product_type,
                "quantity": item.quantity,
                "line_total": money_str(item.line_total),
            }
            for item in order.items
        ],
        "subtotal": money_str(order.subtotal),
        "discount_amount": money_str(order.discount_amount),
        "total": money_str(order.total),
        "tracking_number": order.tracking_number,
        "shipping_address": store.shipping_address() if store else None,
    }


def _send_client_email(order_id: int, *, flag: str, subject_prefix: str, template: str, **extra) -> Optional[bool]:
    order = _load_order(order_id)
    if order is None:
        return None
    if getattr(order, flag):
        return True

    ctx = _order_context(order)
    if not ctx["contact_email"]:
        logger.warning("Notification %s skipped for %s: client has no contact email", template, order.order_number)
        return None

    subject = f"{subject_prefix} ({order.order_number})"
    sent = email_service.send_template(ctx["contact_email"], subject, template, **ctx, **extra)
    if sent:
        _mark_sent(order, flag)
    return sent


def send_order_created(order_id: int, *, is_recurring: bool = False) -> Optional[bool]:
    return _send_client_email(
        order_id,
        flag="email_order_created_sent",
        subject_prefix="Order Confirmed!",
        template="order_created.html",
        is_recurring=is_recurring,
    )


def send_production_started(order_id: int) -> Optional[bool]:
    return _send_client_email(
        order_id,
        flag="email_production_started_sent",
        subject_prefix="Your order is now in production!",
        template="production_started.html",
    )


def send_seven_day_reminder(order_id: int) -> Optional[bool]:
    return _send_client_email(
        order_id,
        flag="email_seven_day_reminder_sent",
        subject_prefix="Your order ships in 7 days!",
        template="seven_day_reminder.html",
    )


def send_ready_to_ship(order_id: int) -> Optional[bool]:
    return _send_client_email(
        order_id,
        flag="email_ready_to_ship_sent",
        subject_prefix="Your order is ready to ship!",
        template="ready_to_ship.html",
    )


def send_order_shipped(order_id: int) -> Optional[bool]:
    """
    Shipped notice to the client AND the assigned rep. The flag flips only
    when both sends succeeded. A missing rep email counts as a failed rep
    send and nothing is sent to either party.
    """
    order = _load_order(order_id)
    if order is None:
        return None
    if order.email_shipped_sent:
        return True

    ctx = _order_context(order)
    if not ctx["contact_email"]:
        logger.warning("Shipped notification skipped for %s: client has no contact email", order.order_number)
        return None
    if not ctx["rep_email"]:
        logger.warning("Shipped notification held for %s: no rep email to notify", order.order_number)
        return False

    client_sent = email_service.send_template(
        ctx["contact_email"],
        f"Your order has shipped! ({order.order_number})",
        "order_shipped.html",
        **ctx,
    )
    rep_sent = email_service.send_template(
        ctx["rep_email"],
        f"Order shipped for {ctx['client_name']} ({order.order_number})",
        "order_shipped_rep.html",
        **ctx,
    )

    if client_sent and rep_sent:
        _mark_sent(order, "email_shipped_sent")
        return True
    return False


def send_recurring_order_rep(order_id: int) -> Optional[bool]:
    """Tell the assigned rep a recurring order was generated."""
    order = _load_order(order_id)
    if order is None:
        return None
    ctx = _order_context(order)
    if not ctx["rep_email"]:
        return None
    parent = order.parent_order
    return email_service.send_template(
        ctx["rep_email"],
        f"Recurring order created for {ctx['client_name']} ({order.order_number})",
        "recurring_order_rep.html",
        parent_order_number=parent.order_number if parent else None,
        **ctx,
    )


# =============================================================================
# Label approval emails
# =============================================================================


def hash_approval_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_approval_token(label: Label) -> str:
    """Create a new single-use approval token; only its hash is stored."""
    token = secrets.token_urlsafe(32)
    ttl_hours = current_app.config.get("LABEL_APPROVAL_TOKEN_TTL_HOURS", 168)
    label.approval_token_hash = hash_approval_token(token)
    label.approval_token_expires_at = utcnow() + timedelta(hours=ttl_hours)
    return token


def _label_context(label: Label) -> dict:
    client = label.client
    store = client.store if client else None
    rep = client.assigned_rep if client else None
    first_image = label.images[0] if label.images else None
    return {
        "flavor_name": label.flavor_name,
        "product_type": label.product_type,
        "store_name": store.name if store else "",
        "store_email": client.contact_email if client else None,
        "rep_name": rep.name if rep else "",
        "rep_email": rep.email if rep else None,
        "label_image_url": first_image.secure_url if first_image else None,
    }


def send_label_approval_request(label_id: int) -> Optional[bool]:
    """
    Email the store a link to approve the label's artwork.

    Skipped when the label has left awaiting_store_approval, has no images,
    or the client has no contact email or rep.
    """
    label = db.session.get(Label, label_id)
    if label is None or label.current_stage != "awaiting_store_approval":
        return None

    ctx = _label_context(label)
    if not ctx["label_image_url"] or not ctx["store_email"] or not ctx["rep_email"]:
        logger.info("Label %s approval request skipped: missing image, store email, or rep", label_id)
        return None

    token = issue_approval_token(label)
    db.session.commit()

    frontend_url = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    ttl_days = max(1, current_app.config.get("LABEL_APPROVAL_TOKEN_TTL_HOURS", 168) // 24)
    return email_service.send_template(
        ctx["store_email"],
        f"Label Approval Required: {ctx['flavor_name']} ({ctx['product_type']})",
        "label_approval_request.html",
        approval_link=f"{frontend_url}/label-approval/{token}",
        link_ttl_days=ttl_days,
        **ctx,
    )


def send_label_approved_by_store(label_id: int) -> Optional[bool]:
    label = db.session.get(Label, label_id)
    if label is None:
        return None
    ctx = _label_context(label)
    if not ctx["rep_email"]:
        return None
    return email_service.send_template(
        ctx["rep_email"],
        f"Label Approved: {ctx['flavor_name']} ({ctx['product_type']}) - {ctx['store_name']}",
        "label_approved_by_store.html",
        **ctx,
    )
