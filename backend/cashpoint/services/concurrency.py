# Overview: Unit-of-work helpers; row locking, bounded retry and deadlines around DB work.

"""
Concurrency model

Every stock-mutating operation (create, cancel, refund, manual adjust) runs as
one unit of work:

1. begin_unit_of_work(deadline) opens the write transaction up front. Its lock
   wait is capped at the time left before the deadline, so no attempt blocks
   past it.
   - SQLite: BEGIN IMMEDIATE takes the database write lock before any read,
     so check-then-act on stock is serialized across connections.
   - PostgreSQL: SET LOCAL lock_timeout bounds how long row locks are awaited.
2. Product and transaction rows are read with SELECT ... FOR UPDATE
   (lock_for_update). Products are locked in ascending id order.
3. The callable commits. Any exception rolls the whole unit back; nothing
   partial is ever visible.

run_with_retry() re-runs the callable from the start on lock/write conflicts
(OperationalError, StaleDataError from version_id_col) up to a bounded number
of attempts and within a deadline, then raises ConflictRetryExhaustedError.
"""

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictRetryExhaustedError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing: a locked read must overwrite whatever the identity map
    already holds, or a later flush would trip the version check.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; BEGIN IMMEDIATE covers it there.
    """
    return query.with_for_update().populate_existing()


def lock_wait_ms(deadline: float | None = None) -> int:
    """LOCK_TIMEOUT_MS, shortened so a single lock wait never outlives the deadline."""
    wait_ms = int(current_app.config.get("LOCK_TIMEOUT_MS", 5000))
    if deadline is not None:
        remaining_ms = int((deadline - time.monotonic()) * 1000)
        wait_ms = max(1, min(wait_ms, remaining_ms))
    return wait_ms


def begin_unit_of_work(deadline: float | None = None) -> None:
    """
    Open the write transaction for a unit of work on the current session.

    The lock wait (SQLite busy timeout, PostgreSQL lock_timeout) is capped at
    the time left before `deadline`.
    """
    wait_ms = lock_wait_ms(deadline)
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        raw = db.session.connection().connection.dbapi_connection
        if not getattr(raw, "in_transaction", False):
            db.session.execute(text(f"PRAGMA busy_timeout = {wait_ms}"))
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL lock_timeout = {wait_ms}"))


def deadline_from_now(seconds: float | None = None) -> float:
    if seconds is None:
        seconds = float(current_app.config.get("UNIT_OF_WORK_DEADLINE_SECONDS", 10))
    return time.monotonic() + seconds


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    deadline: float | None = None,
    backoff_base: float = 0.05,
):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, "database is locked")
    and StaleDataError (optimistic locking conflicts). Every failure rolls the
    session back; non-retryable exceptions are re-raised untouched.
    """
    if attempts is None:
        attempts = int(current_app.config.get("UNIT_OF_WORK_ATTEMPTS", 3))
    if deadline is None:
        deadline = deadline_from_now()

    last_exc = None
    for attempt in range(attempts):
        if time.monotonic() >= deadline:
            break
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            current_app.logger.warning(
                "Unit of work conflict (attempt %d/%d): %s", attempt + 1, attempts, exc
            )
            if attempt < attempts - 1:
                time.sleep(min(backoff_base * (2 ** attempt), max(0.0, deadline - time.monotonic())))
        except Exception:
            db.session.rollback()
            raise

    raise ConflictRetryExhaustedError(
        "Could not complete the operation because of concurrent updates; please retry",
        details={"attempts": attempts},
    ) from last_exc
