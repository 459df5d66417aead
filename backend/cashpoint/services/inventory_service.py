# Overview: Service-layer operations for inventory; the single writer of Product.stock_quantity.

"""
Inventory Ledger invariants (authoritative)

- Product.stock_quantity is the source of truth for sellable units.
- Stock is never negative once persisted.
- Only this module writes stock_quantity after a product is created.

Mutation policies:
- reserve_and_decrement: FAILS (InsufficientStockError) if stock < quantity.
  A rejected sale is recoverable by the cashier; a silently clamped one would
  record a quantity that never left the shelf.
- increment: unconditional add-back, used by reversal. It only ever returns
  units a sale previously took, so it cannot underflow.
- adjust: manual restock/correction with a signed delta, CLAMPED at zero.

reserve_and_decrement / increment / adjust do not commit: they run inside the
caller's unit of work (see concurrency.py). adjust_stock() is the standalone,
self-committing entry point for manual adjustments.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import Product
from ..validation import parse_int
from .concurrency import begin_unit_of_work, deadline_from_now, lock_for_update, run_with_retry


@dataclass(frozen=True)
class StockSnapshot:
    """Product state observed immediately before a decrement."""
    product_id: int
    name: str
    selling_price: Decimal
    stock_before: int


def lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(
            f"Product with ID {product_id} not found",
            details={"product_id": product_id},
        )
    return product


def reserve_and_decrement(product_id: int, quantity: int) -> StockSnapshot:
    """
    Check and decrement stock for one sale line under the product row lock.

    Returns the pre-decrement snapshot (the caller captures unit price from it).
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    product = lock_product(product_id)
    available = product.stock_quantity
    if available < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "available": available,
            },
        )

    snapshot = StockSnapshot(
        product_id=product.id,
        name=product.name,
        selling_price=product.selling_price,
        stock_before=available,
    )
    product.stock_quantity = available - quantity
    db.session.flush()
    return snapshot


def increment(product_id: int, quantity: int) -> Product:
    """Restore previously reserved stock (reversal path)."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    product = lock_product(product_id)
    product.stock_quantity = product.stock_quantity + quantity
    db.session.flush()
    return product


def adjust(product_id: int, delta: int) -> Product:
    """Apply a signed manual adjustment, clamping the result at zero."""
    product = lock_product(product_id)
    product.stock_quantity = max(0, product.stock_quantity + delta)
    db.session.flush()
    return product


def adjust_stock(product_id: int, delta) -> Product:
    """
    Manual restock/correction as its own unit of work.

    Negative deltas larger than the current stock leave the product at 0.
    """
    delta = parse_int(delta, "quantity_delta")
    deadline = deadline_from_now()

    def _op():
        begin_unit_of_work(deadline)
        product = adjust(product_id, delta)
        db.session.commit()
        return product

    product = run_with_retry(_op, deadline=deadline)
    current_app.logger.info(
        "Stock adjusted for product %s by %+d (now %d)",
        product.id, delta, product.stock_quantity,
    )
    return product


def get_low_stock_products() -> list[Product]:
    """Active products at or below their low-stock threshold."""
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
