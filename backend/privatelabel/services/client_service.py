# Overview: Service-layer operations for private-label clients; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import case, func, update

from ..extensions import db
from ..models import (
    ClientOrder,
    IN_PRODUCTION_STATUSES,
    Label,
    PrivateLabelClient,
    RECURRING_INTERVALS,
    Rep,
    Store,
    TERMINAL_LABEL_STAGE,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    normalize_pagination,
    parse_bool,
    parse_int,
)
from . import events, media_service

logger = logging.getLogger(__name__)

ACTIVE_ORDER_STATUSES = ("waiting",) + IN_PRODUCTION_STATUSES


def _normalize_email(value, *, field: str = "contact_email") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", {"field": field})
    email = value.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError(f"{field} must be a valid email address", {"field": field})
    return email


def _load_rep(rep_id) -> Rep:
    rep_id = parse_int(rep_id, "assigned_rep_id")
    rep = db.session.get(Rep, rep_id)
    if rep is None:
        raise NotFoundError("Rep not found", {"rep_id": rep_id})
    return rep


def validate_schedule(raw) -> tuple[bool, str | None]:
    """
    Normalize {"enabled": bool, "interval": str|None}. The interval is
    required when enabled and must be one of RECURRING_INTERVALS when given.
    """
    if raw is None:
        return False, None
    if not isinstance(raw, dict):
        raise ValidationError("recurring_schedule must be an object", {"field": "recurring_schedule"})
    enabled = parse_bool(raw.get("enabled", False), "recurring_schedule.enabled")
    interval = raw.get("interval")
    if interval in ("", None):
        interval = None
    elif interval not in RECURRING_INTERVALS:
        raise ValidationError(
            f"interval must be one of: {', '.join(RECURRING_INTERVALS)}",
            {"field": "recurring_schedule.interval", "interval": interval},
        )
    if enabled and interval is None:
        raise ValidationError(
            "interval is required when the recurring schedule is enabled",
            {"field": "recurring_schedule.interval"},
        )
    return enabled, interval


def get_client(client_id: int) -> PrivateLabelClient:
    client = db.session.get(PrivateLabelClient, client_id)
    if client is None:
        raise NotFoundError("Client not found", {"client_id": client_id})
    return client


def _label_counts(client_ids: list[int]) -> dict[int, dict]:
    if not client_ids:
        return {}
    rows = (
        db.session.query(
            Label.client_id,
            func.sum(case((Label.current_stage == TERMINAL_LABEL_STAGE, 1), else_=0)),
            func.sum(case((Label.current_stage != TERMINAL_LABEL_STAGE, 1), else_=0)),
        )
        .filter(Label.client_id.in_(client_ids))
        .group_by(Label.client_id)
        .all()
    )
    counts = {cid: {"approved": 0, "in_progress": 0} for cid in client_ids}
    for cid, approved, in_progress in rows:
        counts[cid] = {"approved": int(approved or 0), "in_progress": int(in_progress or 0)}
    return counts


def list_clients(
    *,
    status: str | None = None,
    rep_id: int | None = None,
    search: str | None = None,
    page=None,
    limit=None,
) -> dict:
    page, limit = normalize_pagination(page, limit, default_limit=50)

    q = db.session.query(PrivateLabelClient).join(Store, PrivateLabelClient.store_id == Store.id)
    if status:
        q = q.filter(PrivateLabelClient.status == status)
    if rep_id:
        q = q.filter(PrivateLabelClient.assigned_rep_id == rep_id)
    if search:
        q = q.filter(Store.name.ilike(f"%{search.strip()}%"))

    total = q.count()
    clients = (
        q.order_by(Store.name.asc(), PrivateLabelClient.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    counts = _label_counts([c.id for c in clients])
    return {
        "total": total,
        "clients": [c.to_dict(label_counts=counts.get(c.id)) for c in clients],
        "page": page,
        "limit": limit,
    }


def list_clients_with_approved_labels() -> list[PrivateLabelClient]:
    """Clients that own at least one ready_for_production label (orderable)."""
    return (
        db.session.query(PrivateLabelClient)
        .join(Store, PrivateLabelClient.store_id == Store.id)
        .filter(
            PrivateLabelClient.labels.any(Label.current_stage == TERMINAL_LABEL_STAGE)
        )
        .order_by(Store.name.asc())
        .all()
    )


def create_client(payload: dict) -> PrivateLabelClient:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    store_id = payload.get("store_id")
    if store_id is None:
        raise ValidationError("store_id is required", {"field": "store_id"})
    store_id = parse_int(store_id, "store_id")
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError("Store not found", {"store_id": store_id})

    existing = db.session.query(PrivateLabelClient.id).filter_by(store_id=store_id).first()
    if existing is not None:
        raise ConflictError(
            "This store is already a private label client",
            {"store_id": store_id, "client_id": existing[0]},
        )

    contact_email = _normalize_email(payload.get("contact_email"))
    if payload.get("assigned_rep_id") is None:
        raise ValidationError("assigned_rep_id is required", {"field": "assigned_rep_id"})
    rep = _load_rep(payload.get("assigned_rep_id"))
    enabled, interval = validate_schedule(payload.get("recurring_schedule"))

    client = PrivateLabelClient(
        store_id=store.id,
        status="onboarding",
        contact_email=contact_email,
        assigned_rep_id=rep.id,
        recurring_enabled=enabled,
        recurring_interval=interval,
    )
    db.session.add(client)
    db.session.commit()
    logger.info("Enrolled store %s as private-label client %s", store.id, client.id)
    return client


def update_client(client_id: int, payload: dict) -> PrivateLabelClient:
    client = get_client(client_id)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if "contact_email" in payload:
        client.contact_email = _normalize_email(payload["contact_email"])
    if "assigned_rep_id" in payload:
        client.assigned_rep_id = _load_rep(payload["assigned_rep_id"]).id
    if "recurring_schedule" in payload:
        client.recurring_enabled, client.recurring_interval = validate_schedule(payload["recurring_schedule"])
    if "status" in payload:
        if payload["status"] not in ("onboarding", "active"):
            raise ValidationError("status must be 'onboarding' or 'active'", {"field": "status"})
        client.status = payload["status"]

    db.session.commit()
    return client


def update_schedule(client_id: int, payload: dict) -> PrivateLabelClient:
    client = get_client(client_id)
    client.recurring_enabled, client.recurring_interval = validate_schedule(payload)
    db.session.commit()
    return client


def delete_client(client_id: int) -> None:
    """
    Delete a client and its labels.

    Refused while any order is waiting or in production, and while any
    other order history exists (orders are never hard-deleted).
    """
    client = get_client(client_id)

    active = (
        db.session.query(func.count(ClientOrder.id))
        .filter(
            ClientOrder.client_id == client.id,
            ClientOrder.status.in_(ACTIVE_ORDER_STATUSES),
        )
        .scalar()
    )
    if active:
        raise StateConflictError(
            "Cannot delete a client with orders waiting or in production",
            {"client_id": client.id, "active_orders": active},
        )
    history = db.session.query(func.count(ClientOrder.id)).filter(ClientOrder.client_id == client.id).scalar()
    if history:
        raise StateConflictError(
            "Cannot delete a client with order history",
            {"client_id": client.id, "orders": history},
        )

    public_ids = [img.public_id for label in client.labels for img in label.images]
    db.session.delete(client)
    db.session.commit()
    media_service.delete_quietly(public_ids)
    logger.info("Deleted private-label client %s and its labels", client_id)


# =============================================================================
# Domain event handlers
# =============================================================================


def activate_on_label_ready(event: events.LabelReachedProduction) -> bool:
    """
    Promote an onboarding client to active. The conditional UPDATE makes
    this fire at most once per client, even under concurrent label moves.
    """
    result = db.session.execute(
        update(PrivateLabelClient)
        .where(
            PrivateLabelClient.id == event.client_id,
            PrivateLabelClient.status == "onboarding",
        )
        .values(status="active")
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        logger.info("Client %s activated: label %s reached production", event.client_id, event.label_id)
        return True
    return False


def register_event_handlers() -> None:
    events.subscribe(events.LabelReachedProduction, activate_on_label_ready)
