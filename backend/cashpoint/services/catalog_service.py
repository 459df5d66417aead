# Overview: Service-layer operations for categories and products (catalog collaborators).

"""
Catalog service.

- Category deletion is blocked while any product references it (never cascaded).
- Products are soft-deleted (is_active=False) so line items keep a valid
  product reference forever.
- stock_quantity is only settable at creation; afterwards it moves through
  inventory_service exclusively.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from . import inventory_service
from .concurrency import begin_unit_of_work, run_with_retry

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category_id", "image_url",
        "purchase_price", "selling_price", "stock_quantity",
        "low_stock_threshold", "is_active",
    },
    required_on_create={"name", "purchase_price", "selling_price"},
)

# No stock_quantity: stock changes go through the inventory ledger
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"stock_quantity"},
)


# =============================================================================
# Categories
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(
            f"Category with ID {category_id} not found",
            details={"category_id": category_id},
        )
    return category


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, payload: dict) -> Category:
    category = get_category(category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    for k, v in patch.items():
        setattr(category, k, v)
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter_by(category_id=category.id).count()
    if in_use:
        raise ConflictError(
            "Cannot delete category that is referenced by products",
            details={"category_id": category.id, "product_count": in_use},
        )
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# Products
# =============================================================================

def _require_category(category_id: int | None) -> None:
    if category_id is not None:
        get_category(category_id)


def list_products(*, active_only: bool = False, category_id: int | None = None) -> list[Product]:
    q = db.session.query(Product)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(
            f"Product with ID {product_id} not found",
            details={"product_id": product_id},
        )
    return product


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    _require_category(patch.get("category_id"))

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    """
    Patch product master data.

    Runs as a unit of work: Product carries a version counter that every sale
    bumps, so the row is re-read under lock and the patch re-applied when a
    concurrent write wins the race.
    """
    get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    if "category_id" in patch:
        _require_category(patch["category_id"])

    def _op():
        begin_unit_of_work()
        product = inventory_service.lock_product(product_id)
        for k, v in patch.items():
            setattr(product, k, v)
        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft delete; history keeps pointing at the row."""
    return update_product(product_id, {"is_active": False})
