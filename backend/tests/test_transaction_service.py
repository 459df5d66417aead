from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from cashpoint.errors import (
    CodeGenerationExhaustedError,
    ConflictRetryExhaustedError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from cashpoint.models import Product, Transaction, TransactionItem
from cashpoint.services import code_service, inventory_service, settings_service, transaction_service


def _sell(user, product, quantity=1, discount="0", transaction_discount="0", payment_method="cash"):
    return transaction_service.create_transaction(
        user_id=user.id,
        items=[{"product_id": product.id, "quantity": quantity, "discount_amount": discount}],
        transaction_discount=transaction_discount,
        payment_method=payment_method,
    )


class TestCreateTransaction:
    def test_reference_cart(self, db_session, cashier, coffee, reload):
        tx = _sell(cashier, coffee, quantity=2, discount=1.00, transaction_discount=2.00)

        assert tx.status == "completed"
        assert tx.subtotal == Decimal("38.98")
        assert tx.discount_amount == Decimal("3.00")
        assert tx.tax_amount == Decimal("0.00")
        assert tx.total_amount == Decimal("36.98")
        assert isinstance(tx.total_amount, Decimal)
        assert reload(Product, coffee.id).stock_quantity == 8

    def test_persists_line_items_with_price_snapshot(self, db_session, cashier, coffee, mug):
        tx = transaction_service.create_transaction(
            user_id=cashier.id,
            items=[
                {"product_id": coffee.id, "quantity": 1},
                {"product_id": mug.id, "quantity": 2, "discount_amount": "0.50"},
            ],
            payment_method="card",
        )

        coffee.selling_price = Decimal("24.99")
        db_session.commit()

        items = transaction_service.get_transaction_items(tx.id)
        assert [(i.product_id, i.quantity, i.unit_price, i.discount_amount, i.total_price) for i in items] == [
            (coffee.id, 1, Decimal("19.99"), Decimal("0.00"), Decimal("19.99")),
            (mug.id, 2, Decimal("7.50"), Decimal("0.50"), Decimal("14.50")),
        ]
        assert tx.subtotal == Decimal("34.49")
        assert tx.payment_method == "card"

    def test_uses_configured_tax_rate(self, db_session, cashier, mug):
        settings_service.update_setting("tax_rate", "0.10")

        tx = _sell(cashier, mug, quantity=2)

        assert tx.subtotal == Decimal("15.00")
        assert tx.tax_amount == Decimal("1.50")
        assert tx.total_amount == Decimal("16.50")

    def test_repeated_product_lines_share_the_stock_check(self, db_session, cashier, mug, reload):
        with pytest.raises(InsufficientStockError):
            transaction_service.create_transaction(
                user_id=cashier.id,
                items=[
                    {"product_id": mug.id, "quantity": 3},
                    {"product_id": mug.id, "quantity": 2},
                ],
            )

        assert reload(Product, mug.id).stock_quantity == 4

    def test_codes_are_sequential_within_a_day(self, db_session, cashier, coffee, monkeypatch):
        monkeypatch.setattr(transaction_service, "utcnow", lambda: datetime(2026, 7, 4, 10, 0, 0))

        codes = [_sell(cashier, coffee).transaction_code for _ in range(3)]

        assert codes == ["TRX-20260704-001", "TRX-20260704-002", "TRX-20260704-003"]

    def test_missing_product_leaves_nothing_behind(self, db_session, cashier, coffee):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(
                user_id=cashier.id,
                items=[
                    {"product_id": coffee.id, "quantity": 2},
                    {"product_id": 424242, "quantity": 1},
                ],
            )

        db_session.expire_all()
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert db_session.get(Product, coffee.id).stock_quantity == 10

    def test_insufficient_stock_on_a_later_line_rolls_back_earlier_decrements(self, db_session, cashier, coffee, mug):
        with pytest.raises(InsufficientStockError):
            transaction_service.create_transaction(
                user_id=cashier.id,
                items=[
                    {"product_id": coffee.id, "quantity": 2},
                    {"product_id": mug.id, "quantity": 5},
                ],
            )

        db_session.expire_all()
        assert db_session.query(Transaction).count() == 0
        assert db_session.get(Product, coffee.id).stock_quantity == 10
        assert db_session.get(Product, mug.id).stock_quantity == 4

    def test_unknown_user(self, db_session, coffee, reload):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(
                user_id=777,
                items=[{"product_id": coffee.id, "quantity": 1}],
            )

        assert reload(Product, coffee.id).stock_quantity == 10

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"product_id": 1}],
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": 1, "quantity": -2}],
        [{"product_id": 1, "quantity": 1.5}],
        [{"product_id": 1, "quantity": 1, "discount_amount": -1}],
        [{"product_id": 1, "quantity": 1, "discount_amount": "0.001"}],
        ["not-an-object"],
    ])
    def test_rejects_malformed_items(self, db_session, cashier, items):
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(user_id=cashier.id, items=items)

    def test_rejects_negative_transaction_discount(self, db_session, cashier, coffee):
        with pytest.raises(ValidationError):
            _sell(cashier, coffee, transaction_discount="-0.01")

    def test_rejects_unknown_payment_method(self, db_session, cashier, coffee):
        with pytest.raises(ValidationError):
            _sell(cashier, coffee, payment_method="cheque")

    def test_code_collisions_are_retried_then_exhausted(self, app, db_session, cashier, coffee, monkeypatch):
        taken = _sell(cashier, coffee).transaction_code
        monkeypatch.setattr(code_service, "generate_transaction_code", lambda now=None, prefix=None: taken)

        with pytest.raises(CodeGenerationExhaustedError):
            _sell(cashier, coffee)

        db_session.expire_all()
        assert db_session.query(Transaction).count() == 1
        assert db_session.get(Product, coffee.id).stock_quantity == 9

    def test_code_collision_recovers_on_regeneration(self, db_session, cashier, coffee, monkeypatch, reload):
        taken = _sell(cashier, coffee).transaction_code
        real_generate = code_service.generate_transaction_code
        calls = []

        def flaky_generate(now=None, prefix=None):
            calls.append(now)
            if len(calls) == 1:
                return taken
            return real_generate(now=now, prefix=prefix)

        monkeypatch.setattr(code_service, "generate_transaction_code", flaky_generate)

        tx = _sell(cashier, coffee)

        assert len(calls) == 2
        assert tx.transaction_code != taken
        assert reload(Product, coffee.id).stock_quantity == 8


class TestRetryBudget:
    @pytest.fixture
    def locked_out(self, monkeypatch):
        """Every decrement lands, then the write hits a lock conflict."""
        real_decrement = inventory_service.reserve_and_decrement
        calls = []

        def decrement_then_conflict(product_id, quantity):
            calls.append(product_id)
            real_decrement(product_id, quantity)
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(inventory_service, "reserve_and_decrement", decrement_then_conflict)
        return calls

    def test_gives_up_after_configured_attempts(self, app, db_session, cashier, coffee, locked_out, reload):
        with pytest.raises(ConflictRetryExhaustedError) as excinfo:
            _sell(cashier, coffee, quantity=2)

        assert len(locked_out) == app.config["UNIT_OF_WORK_ATTEMPTS"]
        assert excinfo.value.details == {"attempts": app.config["UNIT_OF_WORK_ATTEMPTS"]}
        assert reload(Product, coffee.id).stock_quantity == 10
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0

    def test_expired_deadline_stops_before_touching_stock(self, app, db_session, cashier, coffee, locked_out, reload, monkeypatch):
        monkeypatch.setitem(app.config, "UNIT_OF_WORK_DEADLINE_SECONDS", 0)

        with pytest.raises(ConflictRetryExhaustedError):
            _sell(cashier, coffee)

        assert locked_out == []
        assert reload(Product, coffee.id).stock_quantity == 10
        assert db_session.query(Transaction).count() == 0

    def test_reversal_conflicts_leave_status_and_stock_alone(self, app, db_session, cashier, coffee, reload, monkeypatch):
        tx = _sell(cashier, coffee, quantity=3)
        real_increment = inventory_service.increment

        def increment_then_conflict(product_id, quantity):
            real_increment(product_id, quantity)
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(inventory_service, "increment", increment_then_conflict)

        with pytest.raises(ConflictRetryExhaustedError):
            transaction_service.cancel_transaction(tx.id)

        assert reload(Transaction, tx.id).status == "completed"
        assert reload(Product, coffee.id).stock_quantity == 7


class TestReversal:
    def test_cancel_restores_stock_and_is_terminal(self, db_session, cashier, coffee, mug, reload):
        tx = transaction_service.create_transaction(
            user_id=cashier.id,
            items=[
                {"product_id": coffee.id, "quantity": 4},
                {"product_id": mug.id, "quantity": 1},
            ],
        )
        assert reload(Product, coffee.id).stock_quantity == 6

        cancelled = transaction_service.cancel_transaction(tx.id)

        assert cancelled.status == "cancelled"
        assert reload(Product, coffee.id).stock_quantity == 10
        assert reload(Product, mug.id).stock_quantity == 4

        with pytest.raises(InvalidStateError) as excinfo:
            transaction_service.cancel_transaction(tx.id)
        assert "Cannot cancel" in str(excinfo.value)
        assert reload(Product, coffee.id).stock_quantity == 10

    def test_refund_restores_stock(self, db_session, cashier, coffee, reload):
        tx = _sell(cashier, coffee, quantity=3)

        refunded = transaction_service.refund_transaction(tx.id)

        assert refunded.status == "refunded"
        assert reload(Product, coffee.id).stock_quantity == 10

    def test_cancelled_transaction_cannot_be_refunded(self, db_session, cashier, coffee, reload):
        tx = _sell(cashier, coffee)
        transaction_service.cancel_transaction(tx.id)

        with pytest.raises(InvalidStateError) as excinfo:
            transaction_service.refund_transaction(tx.id)

        assert "Cannot refund" in str(excinfo.value)
        assert reload(Transaction, tx.id).status == "cancelled"

    def test_refunded_transaction_cannot_be_cancelled(self, db_session, cashier, coffee, reload):
        tx = _sell(cashier, coffee)
        transaction_service.refund_transaction(tx.id)

        with pytest.raises(InvalidStateError):
            transaction_service.cancel_transaction(tx.id)
        assert reload(Product, coffee.id).stock_quantity == 10

    def test_reversal_keeps_line_items_untouched(self, db_session, cashier, coffee):
        tx = _sell(cashier, coffee, quantity=2, discount="1.00")
        before = [i.to_dict() for i in transaction_service.get_transaction_items(tx.id)]

        transaction_service.refund_transaction(tx.id)

        db_session.expire_all()
        after = [i.to_dict() for i in transaction_service.get_transaction_items(tx.id)]
        assert after == before

    def test_restock_after_deactivation_still_works(self, db_session, cashier, coffee, reload):
        tx = _sell(cashier, coffee, quantity=2)
        coffee.is_active = False
        db_session.commit()

        transaction_service.cancel_transaction(tx.id)

        assert reload(Product, coffee.id).stock_quantity == 10

    @pytest.mark.parametrize("reverse", [
        transaction_service.cancel_transaction,
        transaction_service.refund_transaction,
    ])
    def test_missing_transaction(self, db_session, reverse):
        with pytest.raises(NotFoundError):
            reverse(31337)


def test_stock_never_negative_across_mixed_operations(db_session, cashier, mug, reload):
    from cashpoint.services import inventory_service

    first = _sell(cashier, mug, quantity=3)
    inventory_service.adjust_stock(mug.id, -10)
    with pytest.raises(InsufficientStockError):
        _sell(cashier, mug, quantity=1)
    transaction_service.refund_transaction(first.id)
    second = _sell(cashier, mug, quantity=3)
    inventory_service.adjust_stock(mug.id, -1)
    transaction_service.cancel_transaction(second.id)

    assert reload(Product, mug.id).stock_quantity == 3


class TestQueries:
    @pytest.fixture
    def history(self, db_session, cashier, coffee, monkeypatch):
        from cashpoint.models import User

        other = User(username="other", password_hash="x", role="admin")
        db_session.add(other)
        db_session.commit()

        stamps = iter([
            datetime(2026, 1, 10, 9, 0),
            datetime(2026, 1, 11, 9, 0),
            datetime(2026, 1, 12, 9, 0),
            datetime(2026, 1, 12, 18, 0),
        ])
        monkeypatch.setattr(transaction_service, "utcnow", lambda: next(stamps))

        t1 = _sell(cashier, coffee)
        t2 = _sell(other, coffee)
        t3 = _sell(cashier, coffee)
        t4 = _sell(cashier, coffee)
        transaction_service.cancel_transaction(t2.id)
        transaction_service.refund_transaction(t3.id)
        return {"t1": t1.id, "t2": t2.id, "t3": t3.id, "t4": t4.id, "other": other.id}

    def test_defaults_to_newest_first(self, history):
        ids = [t.id for t in transaction_service.list_transactions()]

        assert ids == [history["t4"], history["t3"], history["t2"], history["t1"]]

    def test_inclusive_date_range(self, history):
        ids = [t.id for t in transaction_service.list_transactions(
            start_date="2026-01-11T09:00:00Z",
            end_date="2026-01-12T09:00:00Z",
        )]

        assert ids == [history["t3"], history["t2"]]

    def test_date_only_end_bound_covers_the_whole_day(self, history):
        ids = [t.id for t in transaction_service.list_transactions(
            start_date="2026-01-12",
            end_date="2026-01-12",
        )]

        assert ids == [history["t4"], history["t3"]]

    def test_filter_by_user_and_status(self, history):
        by_user = transaction_service.list_transactions(user_id=history["other"])
        refunded = transaction_service.list_transactions(status="refunded")

        assert [t.id for t in by_user] == [history["t2"]]
        assert [t.id for t in refunded] == [history["t3"]]

    def test_pagination(self, history):
        page = transaction_service.list_transactions(limit=2, offset=1)

        assert [t.id for t in page] == [history["t3"], history["t2"]]

    def test_offset_without_limit(self, history):
        page = transaction_service.list_transactions(offset=3)

        assert [t.id for t in page] == [history["t1"]]

    @pytest.mark.parametrize("kwargs", [
        {"status": "voided"},
        {"limit": 0},
        {"offset": -1},
        {"start_date": "yesterday"},
    ])
    def test_rejects_bad_filters(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            transaction_service.list_transactions(**kwargs)

    def test_get_missing_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.get_transaction(1)
        with pytest.raises(NotFoundError):
            transaction_service.get_transaction_items(1)
