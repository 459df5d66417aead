from __future__ import annotations

from ..extensions import db
from cashpoint.time_utils import to_utc_z

PAYMENT_METHODS = ("cash", "card", "mobile")

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_REFUNDED = "refunded"
TRANSACTION_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_REFUNDED)


class Transaction(db.Model):
    """
    A completed sale.

    LIFECYCLE: created once, atomically, together with all of its items, in
    status 'completed'. Afterwards only `status` moves, exactly once, to either
    'cancelled' or 'refunded' (both terminal).

    created_at is assigned by the application (not the DB clock) because the
    transaction code is derived from it; it is never updated.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_code", name="uq_transactions_transaction_code"),
        db.CheckConstraint(
            "status IN ('completed', 'cancelled', 'refunded')",
            name="ck_transactions_status",
        ),
        db.CheckConstraint(
            "payment_method IN ('cash', 'card', 'mobile')",
            name="ck_transactions_payment_method",
        ),
        db.Index("transactions_user_idx", "user_id"),
        db.Index("transactions_date_idx", "created_at"),
        db.Index("transactions_status_idx", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code (e.g., "TRX-20260101-001")
    transaction_code = db.Column(db.String(64), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    # Line discounts + transaction-level discount, combined
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_COMPLETED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("transactions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} code={self.transaction_code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_code": self.transaction_code,
            "user_id": self.user_id,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """
    Individual line items on a transaction.

    Immutable audit trail: unit_price is the selling price captured at sale
    time, independent of later product price changes. The product reference is
    never nulled, even when the product is later deactivated.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        db.Index("transaction_items_transaction_idx", "transaction_id"),
        db.Index("transaction_items_product_idx", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount_amount": self.discount_amount,
            "total_price": self.total_price,
            "created_at": to_utc_z(self.created_at),
        }
