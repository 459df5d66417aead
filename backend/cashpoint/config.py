# backend/cashpoint/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cashpoint.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cashpoint.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Transaction codes look like TRX-20260101-001
    TRANSACTION_CODE_PREFIX = os.environ.get("TRANSACTION_CODE_PREFIX", "TRX")

    # Decimal fraction (0.08 == 8%). The "tax_rate" setting row wins when present.
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0")

    # Unit-of-work bounds for create/cancel/refund/adjust
    UNIT_OF_WORK_ATTEMPTS = int(os.environ.get("UNIT_OF_WORK_ATTEMPTS", "3"))
    UNIT_OF_WORK_DEADLINE_SECONDS = float(os.environ.get("UNIT_OF_WORK_DEADLINE_SECONDS", "10"))
    CODE_GENERATION_ATTEMPTS = int(os.environ.get("CODE_GENERATION_ATTEMPTS", "5"))

    # SQLite busy timeout / PostgreSQL lock_timeout
    LOCK_TIMEOUT_MS = int(os.environ.get("LOCK_TIMEOUT_MS", "5000"))

    # Browser front-ends allowed to call the API (comma-separated)
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    ]
