# Overview: Flask API routes for users; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import user_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
def list_users():
    users = user_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
def create_user():
    data = request.get_json(silent=True) or {}
    user = user_service.create_user(
        username=data.get("username"),
        password=data.get("password"),
        role=data.get("role", "cashier"),
    )
    return jsonify({"user": user.to_dict()}), 201


@users_bp.get("/<int:user_id>")
def get_user(user_id: int):
    user = user_service.get_user(user_id)
    return jsonify({"user": user.to_dict()}), 200
