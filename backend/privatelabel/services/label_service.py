# Overview: Service-layer operations for labels; design approval stages, artwork, and store approval links.

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import ClientOrderItem, Label, LabelImage, PrivateLabelClient, TERMINAL_LABEL_STAGE
from ..money import money_str
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    StateConflictError,
    ValidationError,
    normalize_pagination,
    optional_text,
    require_text,
)
from . import events, lifecycle_service, media_service, outbox_service, pricing_service
from .actor_service import ActorRef, resolve_actor_names
from .notification_service import hash_approval_token

logger = logging.getLogger(__name__)

AWAITING_STORE_APPROVAL = "awaiting_store_approval"
STORE_APPROVED = "store_approved"
STORE_APPROVAL_NOTE = "Approved by store owner via email link"


def label_to_dict(label: Label, *, include_history: bool = True) -> dict:
    """Serialize a label with stage-history actors resolved to names where possible."""
    names = None
    if include_history:
        names = resolve_actor_names(
            (entry.changed_by_type, entry.changed_by_id) for entry in label.stage_history
        )
    return label.to_dict(include_history=include_history, actor_names=names)


def get_label(label_id: int) -> Label:
    label = db.session.get(Label, label_id)
    if label is None:
        raise NotFoundError("Label not found", {"label_id": label_id})
    return label


def list_labels(
    *,
    client_id: int | None = None,
    stage: str | None = None,
    product_type: str | None = None,
    page=None,
    limit=None,
) -> dict:
    page, limit = normalize_pagination(page, limit, default_limit=50)

    q = db.session.query(Label)
    if client_id:
        q = q.filter(Label.client_id == client_id)
    if stage:
        q = q.filter(Label.current_stage == lifecycle_service.validate_stage(stage))
    if product_type:
        q = q.filter(Label.product_type == product_type)

    total = q.count()
    labels = (
        q.order_by(Label.created_at.desc(), Label.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "total": total,
        "labels": [label_to_dict(label) for label in labels],
        "page": page,
        "limit": limit,
    }


def approved_labels_for_client(client_id: int) -> list[dict]:
    """Orderable labels of a client, each with its current registry unit_price."""
    if db.session.get(PrivateLabelClient, client_id) is None:
        raise NotFoundError("Client not found", {"client_id": client_id})
    labels = (
        db.session.query(Label)
        .filter(Label.client_id == client_id, Label.current_stage == TERMINAL_LABEL_STAGE)
        .order_by(Label.flavor_name.asc())
        .all()
    )
    result = []
    for label in labels:
        data = label.to_dict(include_history=False)
        data["unit_price"] = money_str(pricing_service.resolve_unit_price(label.product_type))
        result.append(data)
    return result


def _check_image_count(files) -> list:
    files = [f for f in (files or []) if f and getattr(f, "filename", None)]
    max_images = current_app.config.get("MAX_LABEL_IMAGES", 5)
    if len(files) > max_images:
        raise ValidationError(
            f"A maximum of {max_images} images can be uploaded at once",
            {"max_images": max_images, "received": len(files)},
        )
    return files


def _require_product_type(value) -> str:
    product_type = require_text({"product_type": value}, "product_type", max_length=120)
    if not pricing_service.is_valid_product_type(product_type):
        raise ValidationError(
            f"Invalid product type '{product_type}'",
            {"product_type": product_type, "valid_product_types": pricing_service.active_product_types()},
        )
    return product_type


def _attach_images(label: Label, assets: list[dict]) -> None:
    start = max((img.position for img in label.images), default=-1) + 1
    for offset, asset in enumerate(assets):
        label.images.append(
            LabelImage(
                position=start + offset,
                url=asset["url"],
                secure_url=asset["secure_url"],
                public_id=asset["public_id"],
                format=asset.get("format"),
                bytes=asset.get("bytes"),
                original_filename=asset.get("original_filename"),
                uploaded_at=utcnow(),
            )
        )


def create_label(payload: dict, *, files=None, actor: ActorRef | None = None) -> Label:
    """
    Create a label at design_in_progress. All validation happens before any
    image is uploaded; if the insert fails, uploaded images are removed.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    if payload.get("client_id") in (None, ""):
        raise ValidationError("client_id is required", {"field": "client_id"})
    try:
        client_id = int(payload["client_id"])
    except (TypeError, ValueError):
        raise ValidationError("client_id must be an integer", {"field": "client_id"})
    if db.session.get(PrivateLabelClient, client_id) is None:
        raise NotFoundError("Client not found", {"client_id": client_id})

    flavor_name = require_text(payload, "flavor_name", max_length=200)
    product_type = _require_product_type(payload.get("product_type"))
    special_instructions = optional_text(payload.get("special_instructions"), "special_instructions")
    files = _check_image_count(files)

    assets = media_service.upload_label_images(files) if files else []
    try:
        label = Label(
            client_id=client_id,
            flavor_name=flavor_name,
            product_type=product_type,
            special_instructions=special_instructions,
            created_by=actor,
        )
        _attach_images(label, assets)
        db.session.add(label)
        db.session.commit()
    except Exception:
        db.session.rollback()
        media_service.delete_quietly([a["public_id"] for a in assets])
        raise

    logger.info("Created label %s (%s %s) for client %s", label.id, flavor_name, product_type, client_id)
    return label


def update_label(label_id: int, payload: dict, *, files=None) -> Label:
    """
    Edit name/type/instructions and manage artwork.

    keep_existing_images, when given, lists the public ids to keep; every
    other existing image is removed (media deletes are best-effort).
    """
    label = get_label(label_id)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    if "flavor_name" in payload:
        label.flavor_name = require_text(payload, "flavor_name", max_length=200)
    if "product_type" in payload:
        label.product_type = _require_product_type(payload.get("product_type"))
    if "special_instructions" in payload:
        label.special_instructions = optional_text(payload.get("special_instructions"), "special_instructions")

    removed: list[str] = []
    if "keep_existing_images" in payload:
        keep = payload.get("keep_existing_images") or []
        if not isinstance(keep, list):
            raise ValidationError("keep_existing_images must be a list", {"field": "keep_existing_images"})
        keep_ids = set(keep)
        for image in list(label.images):
            if image.public_id not in keep_ids:
                removed.append(image.public_id)
                label.images.remove(image)

    files = _check_image_count(files)
    assets = media_service.upload_label_images(files) if files else []
    try:
        _attach_images(label, assets)
        db.session.commit()
    except Exception:
        db.session.rollback()
        media_service.delete_quietly([a["public_id"] for a in assets])
        raise

    media_service.delete_quietly(removed)
    return label


def _apply_stage(label: Label, stage: str, *, actor: ActorRef | None, notes: str | None) -> None:
    """Transition one label (no commit) and queue the stage's side effects."""
    previous = label.current_stage
    lifecycle_service.ensure_label_transition(previous, stage)
    label.record_stage(stage, actor=actor, notes=notes)

    if stage == AWAITING_STORE_APPROVAL and previous != AWAITING_STORE_APPROVAL:
        outbox_service.enqueue(outbox_service.LABEL_APPROVAL_REQUEST, label_id=label.id)
    if stage != AWAITING_STORE_APPROVAL:
        label.approval_token_hash = None
        label.approval_token_expires_at = None
    if stage == TERMINAL_LABEL_STAGE and previous != TERMINAL_LABEL_STAGE:
        events.publish(events.LabelReachedProduction(label_id=label.id, client_id=label.client_id))


def update_stage(label_id: int, stage, *, actor: ActorRef | None = None, notes: str | None = None) -> Label:
    lifecycle_service.validate_stage(stage)
    label = get_label(label_id)
    notes = optional_text(notes, "notes")
    _apply_stage(label, stage, actor=actor, notes=notes)
    db.session.commit()
    logger.info("Label %s moved to %s", label.id, stage)
    return label


def bulk_update_stage(client_id: int, stage, *, actor: ActorRef | None = None, notes: str | None = None) -> int:
    """Move every label of the client not already at stage; returns how many moved."""
    lifecycle_service.validate_stage(stage)
    if db.session.get(PrivateLabelClient, client_id) is None:
        raise NotFoundError("Client not found", {"client_id": client_id})
    notes = optional_text(notes, "notes")

    labels = (
        db.session.query(Label)
        .filter(Label.client_id == client_id, Label.current_stage != stage)
        .order_by(Label.id)
        .all()
    )
    for label in labels:
        _apply_stage(label, stage, actor=actor, notes=notes)
    db.session.commit()
    logger.info("Bulk moved %d label(s) of client %s to %s", len(labels), client_id, stage)
    return len(labels)


def delete_label(label_id: int) -> None:
    label = get_label(label_id)
    in_orders = (
        db.session.query(db.func.count(ClientOrderItem.id))
        .filter(ClientOrderItem.label_id == label.id)
        .scalar()
    )
    if in_orders:
        raise StateConflictError(
            "Cannot delete a label that is used in orders",
            {"label_id": label.id, "order_items": in_orders},
        )
    public_ids = [img.public_id for img in label.images]
    db.session.delete(label)
    db.session.commit()
    media_service.delete_quietly(public_ids)


# =============================================================================
# Public store approval (token links)
# =============================================================================


def _label_for_token(token: str) -> Label:
    if not token:
        raise NotFoundError("Invalid or expired approval link")
    label = (
        db.session.query(Label)
        .filter(Label.approval_token_hash == hash_approval_token(token))
        .first()
    )
    if label is None or label.approval_token_expires_at is None:
        raise NotFoundError("Invalid or expired approval link")
    if label.approval_token_expires_at < utcnow():
        raise NotFoundError("Invalid or expired approval link", {"expired": True})
    return label


def get_label_for_approval(token: str) -> dict:
    """Public summary shown on the approval page."""
    label = _label_for_token(token)
    client = label.client
    return {
        "label": {
            "id": label.id,
            "flavor_name": label.flavor_name,
            "product_type": label.product_type,
            "current_stage": label.current_stage,
            "label_images": [img.to_dict() for img in label.images],
            "store_name": client.store.name if client and client.store else None,
        },
        "is_already_approved": label.current_stage != AWAITING_STORE_APPROVAL,
    }


def approve_by_token(token: str) -> Label:
    """Store owner approves the artwork through the emailed link."""
    label = _label_for_token(token)
    if label.current_stage != AWAITING_STORE_APPROVAL:
        raise StateConflictError(
            "This label is no longer awaiting store approval",
            {"label_id": label.id, "current_stage": label.current_stage},
        )
    _apply_stage(label, STORE_APPROVED, actor=None, notes=STORE_APPROVAL_NOTE)
    outbox_service.enqueue(outbox_service.LABEL_APPROVED_BY_STORE, label_id=label.id)
    db.session.commit()
    logger.info("Label %s approved by store via email link", label.id)
    return label
