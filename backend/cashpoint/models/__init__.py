from .catalog import Category, Product
from .auth import User, USER_ROLES
from .sales import (
    Transaction,
    TransactionItem,
    PAYMENT_METHODS,
    TRANSACTION_STATUSES,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_REFUNDED,
)
from .settings import Setting

__all__ = [
    'Category', 'Product',
    'User', 'USER_ROLES',
    'Transaction', 'TransactionItem',
    'PAYMENT_METHODS', 'TRANSACTION_STATUSES',
    'STATUS_COMPLETED', 'STATUS_CANCELLED', 'STATUS_REFUNDED',
    'Setting',
]
