# Overview: Day-scoped human-readable transaction codes (PREFIX-YYYYMMDD-NNN).

"""
Transaction code generation.

The sequence is count-then-assign: NNN = (transactions created during the
same UTC day) + 1. Two concurrent creators can observe the same count; the
unique constraint on transactions.transaction_code rejects the loser and
transaction_service re-runs the whole unit of work (re-count included) a
bounded number of times.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Transaction
from cashpoint.time_utils import utcnow, utc_day_bounds


def format_transaction_code(prefix: str, day: datetime, sequence: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{sequence:03d}"


def count_transactions_for_day(day: datetime) -> int:
    start, end = utc_day_bounds(day)
    return int(
        db.session.query(func.count(Transaction.id))
        .filter(Transaction.created_at >= start, Transaction.created_at < end)
        .scalar()
        or 0
    )


def generate_transaction_code(now: datetime | None = None, prefix: str | None = None) -> str:
    if now is None:
        now = utcnow()
    if prefix is None:
        prefix = current_app.config.get("TRANSACTION_CODE_PREFIX", "TRX")
    sequence = count_transactions_for_day(now) + 1
    return format_transaction_code(prefix, now, sequence)


def is_code_collision(exc: IntegrityError) -> bool:
    """True when the IntegrityError came from the transaction code uniqueness constraint."""
    return "transaction_code" in str(getattr(exc, "orig", exc))
