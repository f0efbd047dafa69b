# Overview: Flask API routes for private-label clients; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import client_service
from ..validation import DomainError

clients_bp = Blueprint("private_label_clients", __name__, url_prefix="/api/private-label-clients")


@clients_bp.get("")
def list_clients_route():
    """
    List enrolled clients with label counts.

    Query params:
    - status: onboarding | active
    - rep_id: int
    - search: store-name substring
    - page, limit: pagination (default limit 50)
    """
    try:
        result = client_service.list_clients(
            status=request.args.get("status"),
            rep_id=request.args.get("rep_id", type=int),
            search=request.args.get("search"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify(result)
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list clients")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/with-approved-labels")
def clients_with_approved_labels_route():
    try:
        clients = client_service.list_clients_with_approved_labels()
        return jsonify({"clients": [c.to_dict() for c in clients]})
    except Exception:
        current_app.logger.exception("Failed to list clients with approved labels")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
def get_client_route(client_id: int):
    try:
        client = client_service.get_client(client_id)
        return jsonify({"client": client.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.post("")
def create_client_route():
    try:
        client = client_service.create_client(request.get_json(silent=True))
        return jsonify({"client": client.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.put("/<int:client_id>")
def update_client_route(client_id: int):
    try:
        client = client_service.update_client(client_id, request.get_json(silent=True))
        return jsonify({"client": client.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.patch("/<int:client_id>/schedule")
def update_schedule_route(client_id: int):
    """Body: {"enabled": bool, "interval": "monthly" | "bimonthly" | "quarterly"}"""
    try:
        client = client_service.update_schedule(client_id, request.get_json(silent=True))
        return jsonify({"client": client.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update recurring schedule")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<int:client_id>")
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(client_id)
        return jsonify({"message": "Client and associated labels deleted"})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete client")
        return jsonify({"error": "Internal server error"}), 500
