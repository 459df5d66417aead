# backend/cashpoint/__init__.py
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider

from .config import Config
from .errors import PosError
from .extensions import db, migrate


class PosJSONProvider(DefaultJSONProvider):
    """Serialize Decimal money as JSON numbers instead of Flask's default strings."""

    @staticmethod
    def default(o):
        if isinstance(o, Decimal):
            # Values are quantized to cents, so the shortest float repr is the decimal
            # text minus trailing zeros (3.00 -> 3.0); clients re-quantize to cents.
            return float(o)
        return DefaultJSONProvider.default(o)


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.json = PosJSONProvider(app)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Bound how long SQLite waits on the write lock
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        engine_options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
        connect_args = dict(engine_options.get("connect_args") or {})
        connect_args.setdefault("timeout", app.config["LOCK_TIMEOUT_MS"] / 1000)
        engine_options["connect_args"] = connect_args
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.transactions import transactions_bp
    from .routes.products import products_bp
    from .routes.categories import categories_bp
    from .routes.users import users_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(PosError)
    def handle_pos_error(e: PosError):
        return jsonify(e.to_dict()), e.status_code

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
