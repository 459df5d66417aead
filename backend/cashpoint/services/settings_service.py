# Overview: Service-layer operations for settings; flat key/value store and typed readers.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Setting
from ..validation import parse_rate

TAX_RATE_KEY = "tax_rate"

DEFAULT_SETTINGS = {
    "store_name": "Cashpoint Store",
    "currency": "USD",
    "receipt_footer": "Thank you for your purchase!",
}

# Keys whose values are validated before being stored
_VALIDATORS = {
    TAX_RATE_KEY: lambda value: str(parse_rate(value, TAX_RATE_KEY)),
}


def list_settings() -> list[Setting]:
    return db.session.query(Setting).order_by(Setting.key.asc()).all()


def get_setting(key: str) -> Setting | None:
    return db.session.query(Setting).filter_by(key=key).first()


def require_setting(key: str) -> Setting:
    setting = get_setting(key)
    if setting is None:
        raise NotFoundError(f"Setting '{key}' not found", details={"key": key})
    return setting


def update_setting(key: str, value) -> Setting:
    """Upsert a setting by key."""
    key = (key or "").strip()
    if not key:
        raise ValidationError("key is required")
    if value is None:
        raise ValidationError("value is required")

    validator = _VALIDATORS.get(key)
    value = validator(value) if validator else str(value)

    setting = get_setting(key)
    if setting is None:
        setting = Setting(key=key, value=value)
        db.session.add(setting)
    else:
        setting.value = value
    db.session.commit()
    return setting


def ensure_default_settings() -> None:
    """Create missing default rows; never overwrites existing values."""
    defaults = dict(DEFAULT_SETTINGS)
    defaults[TAX_RATE_KEY] = str(current_app.config.get("DEFAULT_TAX_RATE", "0"))
    for key, value in defaults.items():
        if get_setting(key) is None:
            db.session.add(Setting(key=key, value=value))
    db.session.commit()


def get_tax_rate() -> Decimal:
    """Stored tax_rate setting, falling back to Config.DEFAULT_TAX_RATE."""
    setting = get_setting(TAX_RATE_KEY)
    raw = setting.value if setting is not None else current_app.config.get("DEFAULT_TAX_RATE", "0")
    return parse_rate(raw, TAX_RATE_KEY)
