# Overview: Flask API routes for categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import catalog_service

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@categories_bp.post("")
def create_category():
    category = catalog_service.create_category(request.get_json(silent=True))
    return jsonify({"category": category.to_dict()}), 201


@categories_bp.get("/<int:category_id>")
def get_category(category_id: int):
    category = catalog_service.get_category(category_id)
    return jsonify({"category": category.to_dict()}), 200


@categories_bp.patch("/<int:category_id>")
def update_category(category_id: int):
    category = catalog_service.update_category(category_id, request.get_json(silent=True))
    return jsonify({"category": category.to_dict()}), 200


@categories_bp.delete("/<int:category_id>")
def delete_category(category_id: int):
    """Refused with 409 while products still reference the category."""
    catalog_service.delete_category(category_id)
    return jsonify({"deleted": True}), 200
