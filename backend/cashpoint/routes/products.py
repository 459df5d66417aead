# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/cashpoint/routes/products.py
"""
Product management routes.

Stock is read-only here except through /adjust-stock, which goes through the
inventory ledger (clamped manual adjustment).
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import catalog_service, inventory_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - active: "true" to return only active products
    - category_id: int (optional)
    """
    active_only = request.args.get("active", "").lower() == "true"
    category_id = request.args.get("category_id", type=int)
    products = catalog_service.list_products(active_only=active_only, category_id=category_id)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/low-stock")
def list_low_stock_products():
    products = inventory_service.get_low_stock_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
def create_product():
    product = catalog_service.create_product(request.get_json(silent=True))
    return jsonify({"product": product.to_dict()}), 201


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = catalog_service.get_product(product_id)
    return jsonify({"product": product.to_dict()}), 200


@products_bp.patch("/<int:product_id>")
def update_product(product_id: int):
    product = catalog_service.update_product(product_id, request.get_json(silent=True))
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    """Soft delete (deactivate)."""
    product = catalog_service.deactivate_product(product_id)
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:product_id>/adjust-stock")
def adjust_stock(product_id: int):
    """
    Manual stock adjustment.

    Body: {"quantity_delta": -3}
    Results below zero are clamped to zero.
    """
    try:
        data = request.get_json(silent=True) or {}
        if "quantity_delta" not in data:
            return jsonify({"error": "quantity_delta required", "kind": "validation_error", "details": {}}), 400

        product = inventory_service.adjust_stock(product_id, data["quantity_delta"])
        return jsonify({"product": product.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
