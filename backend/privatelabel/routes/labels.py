# Overview: Flask API routes for labels; parses JSON or multipart input and returns JSON responses.

"""
Label routes.

Create/update accept either JSON or multipart/form-data; artwork files go
in the "label_images" field. Stage changes carry an optional actor
({"kind": "admin" | "rep", "id": int}) and notes.

The /public/approve/<token> endpoints are what the store owner's emailed
link opens; they need no actor.
"""

import json

from flask import Blueprint, current_app, jsonify, request

from ..services import label_service
from ..services.actor_service import parse_actor
from ..validation import DomainError, ValidationError, parse_int

labels_bp = Blueprint("labels", __name__, url_prefix="/api/labels")

IMAGE_FIELD = "label_images"


def _decode_json_field(value, field):
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        raise ValidationError(f"{field} must be valid JSON", {"field": field})


def _request_payload() -> tuple[dict, list]:
    """Return (payload, files) from a JSON or multipart request."""
    if request.mimetype == "multipart/form-data":
        payload = {key: request.form.get(key) for key in request.form.keys()}
        if "keep_existing_images" in payload:
            kept = request.form.getlist("keep_existing_images")
            payload["keep_existing_images"] = (
                _decode_json_field(kept[0], "keep_existing_images") if len(kept) == 1 else kept
            )
        if "actor" in payload:
            payload["actor"] = _decode_json_field(payload["actor"], "actor")
        return payload, request.files.getlist(IMAGE_FIELD)
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload, []


@labels_bp.get("")
def list_labels_route():
    """
    Query params:
    - client_id, stage, product_type: filters
    - page, limit: pagination (default limit 50)
    """
    try:
        result = label_service.list_labels(
            client_id=request.args.get("client_id", type=int),
            stage=request.args.get("stage"),
            product_type=request.args.get("product_type"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result)
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list labels")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.get("/client/<int:client_id>/approved")
def approved_labels_route(client_id: int):
    try:
        return jsonify({"labels": label_service.approved_labels_for_client(client_id)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load approved labels")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.get("/<int:label_id>")
def get_label_route(label_id: int):
    try:
        label = label_service.get_label(label_id)
        return jsonify({"label": label_service.label_to_dict(label)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load label")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.post("")
def create_label_route():
    try:
        payload, files = _request_payload()
        actor = parse_actor(payload.pop("actor", None))
        label = label_service.create_label(payload, files=files, actor=actor)
        return jsonify({"label": label_service.label_to_dict(label)}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create label")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.route("/<int:label_id>", methods=["PUT", "PATCH"])
def update_label_route(label_id: int):
    try:
        payload, files = _request_payload()
        payload.pop("actor", None)
        label = label_service.update_label(label_id, payload, files=files)
        return jsonify({"label": label_service.label_to_dict(label)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update label")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.patch("/<int:label_id>/stage")
def update_stage_route(label_id: int):
    """Body: {"stage": str, "actor": {"kind", "id"}?, "notes": str?}"""
    try:
        payload, _ = _request_payload()
        label = label_service.update_stage(
            label_id,
            payload.get("stage"),
            actor=parse_actor(payload.get("actor")),
            notes=payload.get("notes"),
        )
        return jsonify({"label": label_service.label_to_dict(label)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update label stage")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.patch("/bulk/stage")
def bulk_update_stage_route():
    """Body: {"client_id": int, "stage": str, "actor"?: {...}, "notes"?: str}"""
    try:
        payload, _ = _request_payload()
        if payload.get("client_id") is None:
            raise ValidationError("client_id is required", {"field": "client_id"})
        updated = label_service.bulk_update_stage(
            parse_int(payload.get("client_id"), "client_id"),
            payload.get("stage"),
            actor=parse_actor(payload.get("actor")),
            notes=payload.get("notes"),
        )
        return jsonify({"updated_count": updated})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk update label stages")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.delete("/<int:label_id>")
def delete_label_route(label_id: int):
    try:
        label_service.delete_label(label_id)
        return jsonify({"message": "Label deleted"})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete label")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.get("/public/approve/<token>")
def get_label_for_approval_route(token: str):
    try:
        return jsonify(label_service.get_label_for_approval(token))
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load label for approval")
        return jsonify({"error": "Internal server error"}), 500


@labels_bp.post("/public/approve/<token>")
def approve_label_route(token: str):
    try:
        label = label_service.approve_by_token(token)
        return jsonify({
            "message": "Label approved successfully",
            "label": {"id": label.id, "flavor_name": label.flavor_name, "current_stage": label.current_stage},
        })
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve label via link")
        return jsonify({"error": "Internal server error"}), 500
