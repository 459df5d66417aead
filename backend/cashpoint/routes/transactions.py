# Overview: Flask API routes for sales transactions; parses input and returns JSON responses.

# backend/cashpoint/routes/transactions.py
"""Transaction API routes (create, list, get, items, cancel, refund)."""

from flask import Blueprint, request, jsonify
from flask import current_app

from ..errors import PosError
from ..services import transaction_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
def create_transaction_route():
    """
    Create a completed transaction from a cart.

    Body:
    {
        "user_id": 1,
        "items": [{"product_id": 3, "quantity": 2, "discount_amount": 1.00}],
        "transaction_discount": 2.00,
        "payment_method": "cash" | "card" | "mobile"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if "user_id" not in data:
            return jsonify({"error": "user_id required", "kind": "validation_error", "details": {}}), 400

        tx = transaction_service.create_transaction(
            user_id=data.get("user_id"),
            items=data.get("items"),
            transaction_discount=data.get("transaction_discount", 0),
            payment_method=data.get("payment_method", "cash"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    """
    List transactions, newest first.

    Query params:
    - start_date / end_date: ISO-8601, inclusive
    - user_id: int
    - status: completed | cancelled | refunded
    - limit / offset: pagination
    """
    transactions = transaction_service.list_transactions(
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        user_id=request.args.get("user_id"),
        status=request.args.get("status"),
        limit=request.args.get("limit"),
        offset=request.args.get("offset"),
    )
    return jsonify({
        "transactions": [tx.to_dict() for tx in transactions],
        "count": len(transactions),
    }), 200


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    tx = transaction_service.get_transaction(transaction_id)
    return jsonify({"transaction": tx.to_dict()}), 200


@transactions_bp.get("/<int:transaction_id>/items")
def get_transaction_items_route(transaction_id: int):
    items = transaction_service.get_transaction_items(transaction_id)
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@transactions_bp.post("/<int:transaction_id>/cancel")
def cancel_transaction_route(transaction_id: int):
    """Cancel a completed transaction and restore its stock."""
    try:
        tx = transaction_service.cancel_transaction(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/refund")
def refund_transaction_route(transaction_id: int):
    """Refund a completed transaction and restore its stock."""
    try:
        tx = transaction_service.refund_transaction(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to refund transaction")
        return jsonify({"error": "Internal server error"}), 500
