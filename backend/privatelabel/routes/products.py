# Overview: Flask API routes for the private-label product registry; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import catalog_service
from ..validation import DomainError

products_bp = Blueprint("private_label_products", __name__, url_prefix="/api/private-label-products")


@products_bp.get("")
def list_products_route():
    """
    List registry products.

    Query params:
    - active_only: "true" to hide inactive products
    """
    active_only = request.args.get("active_only", "false").lower() in ("1", "true", "yes")
    try:
        return jsonify(catalog_service.list_products(active_only=active_only))
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"product": product.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
def create_product_route():
    try:
        product = catalog_service.create_product(request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        product = catalog_service.update_product(product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>/toggle")
def toggle_product_route(product_id: int):
    try:
        product = catalog_service.toggle_product(product_id)
        return jsonify({"product": product.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to toggle product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
        return jsonify({"message": "Product deleted"})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
