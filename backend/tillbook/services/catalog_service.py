# backend/tillbook/services/catalog_service.py
"""
Catalog Service

Product CRUD. Stock and average cost are ledger balances and are never set
here: a new product starts at stock=0, avg_cost=0 and moves only through
inventory_service (receipts/adjustments) and sales_service (sales).
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFound
from ..models import Product, SaleItem, StockMove
from ..store import LedgerStore
from ..validation import require_id

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "price_cents", "category", "notes"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(store: LedgerStore, product_id) -> Product:
    product_id = require_id("product_id", product_id)
    product = store.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    return product


def _ensure_sku_free(store: LedgerStore, sku: str | None, *, exclude_id: int | None = None) -> None:
    if sku is None:
        return
    q = store.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists.", details={"sku": sku})


def list_products(
    store: LedgerStore,
    *,
    query: str | None = None,
    category: str | None = None,
    in_stock_only: bool = False,
) -> dict:
    """
    Product listing with an optional filter.

    - query: case-insensitive substring match on name or SKU
    - category: exact category match
    - in_stock_only: only products with stock > 0
    """
    q = store.session.query(Product)

    if query:
        pattern = f"%{query.strip()}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category:
        q = q.filter(Product.category == category)
    if in_stock_only:
        q = q.filter(Product.stock > 0)

    products = q.order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def create_product(store: LedgerStore, *, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    _ensure_sku_free(store, patch.get("sku"))

    p = Product(stock=0, avg_cost_cents=0.0)
    apply_product_patch(p, patch)
    if p.price_cents is None:
        p.price_cents = 0

    with store.unit_of_work() as session:
        session.add(p)

    return p.to_dict()


def update_product(store: LedgerStore, *, product_id: int, patch: dict) -> dict:
    p = get_product(store, product_id)

    if "sku" in patch:
        _ensure_sku_free(store, patch["sku"], exclude_id=p.id)

    with store.unit_of_work():
        apply_product_patch(p, patch)

    return p.to_dict()


def remove_product(store: LedgerStore, *, product_id: int) -> None:
    """
    Delete a product.

    Products with stock moves or sale lines are part of the audit trail and
    cannot be removed.
    """
    p = get_product(store, product_id)

    session = store.session
    has_moves = session.query(StockMove.id).filter(StockMove.product_id == p.id).first() is not None
    has_sales = session.query(SaleItem.id).filter(SaleItem.product_id == p.id).first() is not None
    if has_moves or has_sales:
        raise ConflictError(
            "Product has ledger history and cannot be removed.",
            details={"product_id": p.id},
        )

    with store.unit_of_work() as session:
        session.delete(p)
