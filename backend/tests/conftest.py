"""
Pytest fixtures for cashpoint backend tests.

Provides test database setup, seeded users/catalog, and test client.
"""

from decimal import Decimal

import pytest
from cashpoint import create_app
from cashpoint.extensions import db
from cashpoint.models import Category, Product, User


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def cashier(db_session):
    """Cashier user (hash is a placeholder; these tests never log in)."""
    user = User(username="cashier", password_hash="x", role="cashier")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def coffee(db_session, category):
    """Product priced 19.99 with 10 units on hand."""
    product = Product(
        name="Coffee Beans 1kg",
        category_id=category.id,
        purchase_price=Decimal("12.00"),
        selling_price=Decimal("19.99"),
        stock_quantity=10,
        low_stock_threshold=3,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def mug(db_session):
    """Uncategorized product priced 7.50 with 4 units on hand."""
    product = Product(
        name="Mug",
        purchase_price=Decimal("2.25"),
        selling_price=Decimal("7.50"),
        stock_quantity=4,
        low_stock_threshold=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def reload(db_session):
    """Fetch a fresh row, bypassing anything cached in the identity map."""
    def _reload(model, pk):
        db_session.expire_all()
        return db_session.get(model, pk)
    return _reload
