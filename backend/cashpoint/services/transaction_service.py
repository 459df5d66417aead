"""
Transaction Engine - cart in, durable sale out.

WHY: A sale touches three things that must agree: the transaction row, its
line items, and product stock. They are written as ONE unit of work so readers
see either all of it or none of it.

STATE MACHINE:
    completed --cancel--> cancelled   (terminal)
    completed --refund--> refunded    (terminal)
A transaction is reversed at most once, by exactly one of the two operations.
Reversal restores stock and flips status; line items are never modified.

CONCURRENCY: see concurrency.py. Stock checks and decrements happen under
the product row lock inside the unit of work, so two concurrent sales can
never oversell a product.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    CodeGenerationExhaustedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Transaction,
    TransactionItem,
    User,
    PAYMENT_METHODS,
    TRANSACTION_STATUSES,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_REFUNDED,
)
from ..validation import parse_int, parse_money, parse_positive_int
from cashpoint.time_utils import utcnow, parse_iso_datetime
from . import code_service, inventory_service, pricing_service, settings_service
from .concurrency import begin_unit_of_work, deadline_from_now, lock_for_update, run_with_retry

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    discount_amount: Decimal


def _parse_line_requests(items) -> list[LineRequest]:
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("Transaction must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        if isinstance(item, LineRequest):
            lines.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if "product_id" not in item or "quantity" not in item:
            raise ValidationError(f"items[{index}] requires product_id and quantity")
        lines.append(LineRequest(
            product_id=parse_int(item["product_id"], f"items[{index}].product_id"),
            quantity=parse_positive_int(item["quantity"], f"items[{index}].quantity"),
            discount_amount=parse_money(item.get("discount_amount", 0), f"items[{index}].discount_amount"),
        ))
    return lines


def _create_locked(
    user_id: int,
    lines: list[LineRequest],
    transaction_discount: Decimal,
    payment_method: str,
    deadline: float,
) -> Transaction:
    begin_unit_of_work(deadline)

    if db.session.get(User, user_id) is None:
        raise NotFoundError(f"User with ID {user_id} not found", details={"user_id": user_id})

    # Lock every product row up front, in id order, to avoid lock-order deadlocks
    for product_id in sorted({line.product_id for line in lines}):
        inventory_service.lock_product(product_id)

    snapshots = [
        inventory_service.reserve_and_decrement(line.product_id, line.quantity)
        for line in lines
    ]

    totals = pricing_service.compute_totals(
        [
            (snapshot.selling_price, line.quantity, line.discount_amount)
            for snapshot, line in zip(snapshots, lines)
        ],
        transaction_discount=transaction_discount,
        tax_rate=settings_service.get_tax_rate(),
    )

    now = utcnow()
    tx = Transaction(
        transaction_code=code_service.generate_transaction_code(now=now),
        user_id=user_id,
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        total_amount=totals.total_amount,
        payment_method=payment_method,
        status=STATUS_COMPLETED,
        created_at=now,
    )
    db.session.add(tx)
    db.session.flush()

    for line, priced in zip(lines, totals.lines):
        db.session.add(TransactionItem(
            transaction_id=tx.id,
            product_id=line.product_id,
            quantity=priced.quantity,
            unit_price=priced.unit_price,
            discount_amount=priced.discount_amount,
            total_price=priced.line_total,
            created_at=now,
        ))

    db.session.commit()
    return tx


def create_transaction(
    user_id,
    items,
    transaction_discount=0,
    payment_method: str = "cash",
) -> Transaction:
    """
    Create a completed transaction from a cart.

    items: sequence of {"product_id", "quantity", "discount_amount"?} dicts
    (or LineRequest). Unit prices are the products' current selling prices.

    Raises ValidationError, NotFoundError, InsufficientStockError,
    CodeGenerationExhaustedError, ConflictRetryExhaustedError.
    """
    user_id = parse_int(user_id, "user_id")
    lines = _parse_line_requests(items)
    transaction_discount = parse_money(transaction_discount, "transaction_discount")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    code_attempts = int(current_app.config.get("CODE_GENERATION_ATTEMPTS", 5))
    deadline = deadline_from_now()

    for attempt in range(code_attempts):
        try:
            tx = run_with_retry(
                lambda: _create_locked(user_id, lines, transaction_discount, payment_method, deadline),
                deadline=deadline,
            )
        except IntegrityError as exc:
            if not code_service.is_code_collision(exc):
                current_app.logger.exception("Transaction creation failed")
                raise
            current_app.logger.warning(
                "Transaction code collision (attempt %d/%d), regenerating",
                attempt + 1, code_attempts,
            )
            continue
        except SQLAlchemyError:
            current_app.logger.exception("Transaction creation failed")
            raise

        current_app.logger.info(
            "Transaction %s created (id=%s, total=%s, items=%d)",
            tx.transaction_code, tx.id, tx.total_amount, len(lines),
        )
        return tx

    raise CodeGenerationExhaustedError(
        "Could not generate a unique transaction code; please retry",
        details={"attempts": code_attempts},
    )


def _reverse(transaction_id: int, target_status: str, verb: str) -> Transaction:
    deadline = deadline_from_now()

    def _op():
        begin_unit_of_work(deadline)
        tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if tx is None:
            raise NotFoundError(
                f"Transaction with ID {transaction_id} not found",
                details={"transaction_id": transaction_id},
            )

        if tx.status != STATUS_COMPLETED:
            raise InvalidStateError(
                f"Cannot {verb} transaction with status: {tx.status}",
                details={"transaction_id": tx.id, "status": tx.status},
            )

        items = (
            db.session.query(TransactionItem)
            .filter_by(transaction_id=tx.id)
            .order_by(TransactionItem.product_id.asc(), TransactionItem.id.asc())
            .all()
        )
        for item in items:
            inventory_service.increment(item.product_id, item.quantity)

        tx.status = target_status
        db.session.commit()
        return tx

    try:
        tx = run_with_retry(_op, deadline=deadline)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to %s transaction %s", verb, transaction_id)
        raise

    current_app.logger.info("Transaction %s %s (id=%s)", tx.transaction_code, target_status, tx.id)
    return tx


def cancel_transaction(transaction_id: int) -> Transaction:
    """Reverse a completed transaction as 'cancelled' and restore its stock."""
    return _reverse(transaction_id, STATUS_CANCELLED, "cancel")


def refund_transaction(transaction_id: int) -> Transaction:
    """Reverse a completed transaction as 'refunded' and restore its stock."""
    return _reverse(transaction_id, STATUS_REFUNDED, "refund")


def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFoundError(
            f"Transaction with ID {transaction_id} not found",
            details={"transaction_id": transaction_id},
        )
    return tx


def get_transaction_items(transaction_id: int) -> list[TransactionItem]:
    get_transaction(transaction_id)
    return (
        db.session.query(TransactionItem)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionItem.id.asc())
        .all()
    )


def _parse_bound(value, field: str, *, end: bool = False) -> datetime | None:
    """
    Accept datetime or ISO-8601 string. A date-only end bound ("2026-01-31")
    covers that whole day.
    """
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value, end_of_day=end)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def list_transactions(
    *,
    start_date=None,
    end_date=None,
    user_id=None,
    status: str | None = None,
    limit=None,
    offset=None,
) -> list[Transaction]:
    """
    List transactions, newest first.

    Date bounds are inclusive on created_at. Absent filters return everything.
    """
    q = db.session.query(Transaction)

    start = _parse_bound(start_date, "start_date")
    end = _parse_bound(end_date, "end_date", end=True)
    if start is not None:
        q = q.filter(Transaction.created_at >= start)
    if end is not None:
        q = q.filter(Transaction.created_at <= end)

    if user_id is not None:
        q = q.filter(Transaction.user_id == parse_int(user_id, "user_id"))

    if status is not None:
        if status not in TRANSACTION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(TRANSACTION_STATUSES)}")
        q = q.filter(Transaction.status == status)

    q = q.order_by(Transaction.created_at.desc(), Transaction.id.desc())

    if offset is not None:
        offset = parse_int(offset, "offset")
        if offset < 0:
            raise ValidationError("offset must be >= 0")
        q = q.offset(offset)
    if limit is not None:
        limit = parse_positive_int(limit, "limit")
        q = q.limit(min(limit, MAX_PAGE_SIZE))

    return q.all()
