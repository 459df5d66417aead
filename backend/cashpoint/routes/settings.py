# Overview: Flask API routes for the key/value settings store.

from flask import Blueprint, request, jsonify

from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def list_settings():
    settings = settings_service.list_settings()
    return jsonify({"items": [s.to_dict() for s in settings]}), 200


@settings_bp.get("/<string:key>")
def get_setting(key: str):
    setting = settings_service.require_setting(key)
    return jsonify({"setting": setting.to_dict()}), 200


@settings_bp.put("/<string:key>")
def update_setting(key: str):
    """Upsert. Body: {"value": "0.08"}"""
    data = request.get_json(silent=True) or {}
    setting = settings_service.update_setting(key, data.get("value"))
    return jsonify({"setting": setting.to_dict()}), 200
