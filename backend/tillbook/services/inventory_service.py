# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/tillbook/services/inventory_service.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import func

from ..errors import InsufficientStock, NotFound, ValidationError
from ..models import Product, StockMove, REASON_ADJUST, REASON_PURCHASE, REASON_SALE
from ..store import LedgerStore
from ..time_utils import truncate_to_millis, utcnow
from ..validation import coerce_int, require_cost_cents, require_id, require_positive_quantity, MAX_QUANTITY
"""
Tillbook Inventory Invariants (authoritative)

Balances:
- Product.stock is a cached balance of the stock_moves ledger:
    stock == SUM(stock_moves.delta) for that product, at every commit.
- stock never goes below zero; an operation that would do so is rejected
  before anything is written.

Weighted average cost (WAC):
- Moved by receipts only:
    new_avg = (avg * stock + unit_cost * qty) / (stock + qty)
  and new_avg = unit_cost when the product had no stock.
- Sales freeze the current avg into the sale line and the sale move; they
  never change it. Adjustments never change it either.

Atomicity:
- Each public operation writes the product row and appends its stock move
  inside one LedgerStore.unit_of_work().
"""

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]

RECEIPT_COMMENT = "Receipt"
ADJUST_COMMENT = "Adjustment"


def weighted_average_cost(prior_stock: int, prior_avg_cents: float, qty: int, unit_cost_cents: float) -> float:
    """Receipt-weighted average unit cost after receiving qty at unit_cost_cents."""
    new_stock = prior_stock + qty
    if prior_stock <= 0 or new_stock <= 0:
        return float(unit_cost_cents)
    return (prior_avg_cents * prior_stock + unit_cost_cents * qty) / new_stock


def _load_product(store: LedgerStore, product_id) -> Product:
    product_id = require_id("product_id", product_id)
    product = store.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    return product


def _receive_inner(
    session,
    product: Product,
    *,
    quantity: int,
    unit_cost_cents: float,
    occurred_at: datetime,
    comment: str | None,
) -> StockMove:
    """Core RECEIVE logic without validation or commit."""
    product.avg_cost_cents = weighted_average_cost(
        product.stock, product.avg_cost_cents, quantity, unit_cost_cents
    )
    product.stock = product.stock + quantity

    move = StockMove(
        product_id=product.id,
        delta=quantity,
        reason=REASON_PURCHASE,
        unit_cost_cents=unit_cost_cents,
        created_at=occurred_at,
        comment=comment or RECEIPT_COMMENT,
    )
    session.add(move)
    session.flush()
    return move


def receive_stock(
    store: LedgerStore,
    *,
    product_id: int,
    quantity,
    unit_cost_cents,
    comment: str | None = None,
    clock: Clock = utcnow,
) -> StockMove:
    """
    Receive stock (purchase) and fold its cost into the weighted average.

    The product update and the purchase move commit together or not at all.
    """
    quantity = require_positive_quantity("quantity", quantity)
    unit_cost_cents = require_cost_cents("unit_cost_cents", unit_cost_cents)

    product = _load_product(store, product_id)

    with store.unit_of_work() as session:
        move = _receive_inner(
            session,
            product,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            occurred_at=truncate_to_millis(clock()),
            comment=comment,
        )

    log.info(
        "Received %s x product %s at %.2f cents (stock=%s avg=%.4f)",
        quantity, product.id, unit_cost_cents, product.stock, product.avg_cost_cents,
    )
    return move


def adjust_stock(
    store: LedgerStore,
    *,
    product_id: int,
    delta,
    comment: str | None = None,
    clock: Clock = utcnow,
) -> StockMove:
    """
    Manual stock correction (reason=adjust). Does NOT affect average cost.

    Raises InsufficientStock if the adjustment would make on-hand negative.
    """
    delta = coerce_int("delta", delta)
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if abs(delta) > MAX_QUANTITY:
        raise ValidationError(f"delta cannot exceed {MAX_QUANTITY} in magnitude")

    product = _load_product(store, product_id)

    if product.stock + delta < 0:
        raise InsufficientStock(
            product_id=product.id,
            requested=-delta,
            available=product.stock,
            name=product.name,
        )

    with store.unit_of_work() as session:
        product.stock = product.stock + delta
        move = StockMove(
            product_id=product.id,
            delta=delta,
            reason=REASON_ADJUST,
            unit_cost_cents=None,
            created_at=truncate_to_millis(clock()),
            comment=comment or ADJUST_COMMENT,
        )
        session.add(move)
        session.flush()

    log.info("Adjusted product %s by %+d (stock=%s)", product.id, delta, product.stock)
    return move


def record_sale_move(
    session,
    product: Product,
    *,
    quantity: int,
    unit_cost_cents: float,
    occurred_at: datetime,
    comment: str,
) -> StockMove:
    """
    Core SALE decrement without validation or commit.

    Called by sales_service inside the sale's unit of work, after the cart has
    been checked against stock. Re-checks the balance so a caller bug can never
    take stock negative.
    """
    if product.stock - quantity < 0:
        raise InsufficientStock(
            product_id=product.id,
            requested=quantity,
            available=product.stock,
            name=product.name,
        )

    product.stock = product.stock - quantity
    move = StockMove(
        product_id=product.id,
        delta=-quantity,
        reason=REASON_SALE,
        unit_cost_cents=unit_cost_cents,
        created_at=occurred_at,
        comment=comment,
    )
    session.add(move)
    return move


def ledger_balance(store: LedgerStore, product_id: int) -> int:
    """SUM(delta) over all stock moves for a product."""
    total = (
        store.session.query(func.coalesce(func.sum(StockMove.delta), 0))
        .filter(StockMove.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


def reconcile(store: LedgerStore, product_id: int | None = None) -> list[dict]:
    """
    Compare each product's stock with the sum of its ledger deltas.

    Returns one entry per mismatching product; an empty list means the
    ledger and the balances agree.
    """
    sums = (
        store.session.query(
            StockMove.product_id,
            func.coalesce(func.sum(StockMove.delta), 0).label("ledger_sum"),
        )
        .group_by(StockMove.product_id)
    )
    if product_id is not None:
        sums = sums.filter(StockMove.product_id == product_id)
    ledger = {row.product_id: int(row.ledger_sum) for row in sums.all()}

    q = store.session.query(Product)
    if product_id is not None:
        q = q.filter(Product.id == product_id)

    mismatches = []
    for product in q.order_by(Product.id.asc()).all():
        expected = ledger.get(product.id, 0)
        if product.stock != expected:
            mismatches.append({
                "product_id": product.id,
                "name": product.name,
                "stock": product.stock,
                "ledger_sum": expected,
                "difference": product.stock - expected,
            })
    return mismatches


def get_inventory_summary(store: LedgerStore, *, product_id: int) -> dict:
    product = _load_product(store, product_id)
    return {
        "product_id": product.id,
        "stock": product.stock,
        "avg_cost_cents": product.avg_cost_cents,
        "inventory_value_cents": round(product.stock * product.avg_cost_cents, 2),
        "ledger_sum": ledger_balance(store, product.id),
    }


def list_stock_moves(store: LedgerStore, *, product_id: int, limit: int = 200) -> list[StockMove]:
    _load_product(store, product_id)

    q = store.session.query(StockMove).filter(
        StockMove.product_id == product_id,
    ).order_by(
        StockMove.created_at.desc(),
        StockMove.id.desc(),
    )

    return q.limit(limit).all()
