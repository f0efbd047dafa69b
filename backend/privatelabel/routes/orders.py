# Overview: Flask API routes for client orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import order_service
from ..services.actor_service import parse_actor
from ..validation import DomainError, ValidationError

orders_bp = Blueprint("client_orders", __name__, url_prefix="/api/client-orders")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@orders_bp.get("")
def list_orders_route():
    """
    Query params:
    - client_id, rep_id: int filters
    - status: comma-separated statuses
    - start_date, end_date: delivery-date range (both required)
    - search: "PL-..." order-number prefix, otherwise store name
    - page, limit: pagination (default limit 20)
    """
    try:
        result = order_service.list_orders(
            client_id=request.args.get("client_id", type=int),
            status=request.args.get("status"),
            rep_id=request.args.get("rep_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            search=request.args.get("search"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result)
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.order_detail(order_service.get_order(order_id))})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
def create_order_route():
    """
    Body:
        {
            "client_id": int,
            "delivery_date": "YYYY-MM-DD",
            "items": [{"label_id": int, "quantity": int}, ...],
            "discount": number, "discount_type": "flat" | "percentage",
            "note": str, "ship_asap": bool,
            "created_by": {"kind": "admin" | "rep", "id": int}
        }
    """
    try:
        payload = _json_body()
        actor = parse_actor(payload.pop("created_by", None))
        order = order_service.create_order(payload, actor=actor)
        return jsonify({"order": order.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("/<int:order_id>", methods=["PUT", "PATCH"])
def update_order_route(order_id: int):
    try:
        order = order_service.update_order(order_id, _json_body())
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/status")
def update_status_route(order_id: int):
    """Body: {"status": str, "tracking_number"?: str}"""
    try:
        payload = _json_body()
        order = order_service.update_status(
            order_id,
            payload.get("status"),
            tracking_number=payload.get("tracking_number"),
        )
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/push-to-production")
def push_to_production_route(order_id: int):
    try:
        order = order_service.push_to_production(order_id)
        return jsonify({"order": order.to_dict(), "message": "Order pushed to production"})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to push order to production")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/delivery-date")
def update_delivery_date_route(order_id: int):
    """Body: {"delivery_date": "YYYY-MM-DD"}"""
    try:
        order = order_service.update_delivery_date(order_id, _json_body().get("delivery_date"))
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update delivery date")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/ship-asap")
def toggle_ship_asap_route(order_id: int):
    """Body: {"ship_asap": bool} to set, or empty to flip."""
    try:
        order = order_service.toggle_ship_asap(order_id, _json_body().get("ship_asap"))
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to toggle ship ASAP")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
        return jsonify({"message": "Order deleted"})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
