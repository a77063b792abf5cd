"""
Sales Service - cart checkout

finalize_sale() turns a cart into a Sale, its SaleItems and the matching
sale stock moves in a single unit of work. Validation (cart shape, payment,
stock) happens before anything is written, so a rejected sale leaves no trace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from ..errors import InsufficientPayment, InsufficientStock, NotFound, ValidationError
from ..models import Product, Sale, SaleItem
from ..store import LedgerStore
from ..time_utils import truncate_to_millis, utcnow
from ..validation import require_amount_cents, require_id, require_positive_quantity, MAX_AMOUNT_CENTS
from .inventory_service import record_sale_move

log = logging.getLogger(__name__)

CART_LINE_FIELDS = {"product_id", "qty", "unit_price_cents"}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    qty: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.qty * self.unit_price_cents


def parse_cart(cart: Iterable) -> list[CartLine]:
    """Validate raw cart lines (dicts or CartLine) into CartLine objects."""
    if cart is None or isinstance(cart, (str, bytes, dict)):
        raise ValidationError("cart must be a list of lines")

    lines: list[CartLine] = []
    for i, raw in enumerate(cart):
        if isinstance(raw, CartLine):
            raw = {"product_id": raw.product_id, "qty": raw.qty, "unit_price_cents": raw.unit_price_cents}
        if not isinstance(raw, dict):
            raise ValidationError(f"cart line {i + 1} must be an object")

        unknown = set(raw) - CART_LINE_FIELDS
        if unknown:
            raise ValidationError(f"cart line {i + 1}: field not allowed: {', '.join(sorted(unknown))}")
        missing = sorted(CART_LINE_FIELDS - set(raw))
        if missing:
            raise ValidationError(f"cart line {i + 1}: missing required fields: {', '.join(missing)}")

        try:
            lines.append(CartLine(
                product_id=require_id("product_id", raw["product_id"]),
                qty=require_positive_quantity("qty", raw["qty"]),
                unit_price_cents=require_amount_cents("unit_price_cents", raw["unit_price_cents"]),
            ))
        except ValidationError as exc:
            raise ValidationError(f"cart line {i + 1}: {exc.message}") from exc

    if not lines:
        raise ValidationError("Cannot finalize a sale with an empty cart")
    return lines


def _requested_by_product(lines: list[CartLine]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.qty
    return totals


def _validate_on_hand(store: LedgerStore, lines: list[CartLine]) -> dict[int, Product]:
    """
    Check every product in the cart exists and has enough stock.

    Quantities for the same product on several lines are summed. Returns the
    loaded products keyed by id.
    """
    products: dict[int, Product] = {}
    for product_id, qty in _requested_by_product(lines).items():
        product = store.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found", details={"product_id": product_id})
        if product.stock < qty:
            raise InsufficientStock(
                product_id=product_id,
                requested=qty,
                available=product.stock,
                name=product.name,
            )
        products[product_id] = product
    return products


def finalize_sale(
    store: LedgerStore,
    *,
    cart,
    cash_received_cents,
    clock: Callable[[], datetime] = utcnow,
) -> dict:
    """
    Finalize a cash sale.

    1. subtotal = SUM(qty * unit_price)
    2. cash < subtotal -> InsufficientPayment (nothing written)
    3. any line over stock -> InsufficientStock (nothing written)
    4. one unit of work: Sale row, then per line a SaleItem with the frozen
       avg cost, a stock decrement and a sale stock move.

    Returns {"sale_id", "subtotal_cents", "change_cents"}.
    """
    lines = parse_cart(cart)
    cash_received_cents = require_amount_cents("cash_received_cents", cash_received_cents)

    subtotal_cents = sum(line.line_total_cents for line in lines)
    if subtotal_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"subtotal cannot exceed {MAX_AMOUNT_CENTS}")

    if cash_received_cents < subtotal_cents:
        raise InsufficientPayment(
            subtotal_cents=subtotal_cents,
            cash_received_cents=cash_received_cents,
        )

    products = _validate_on_hand(store, lines)

    now = truncate_to_millis(clock())
    change_cents = cash_received_cents - subtotal_cents

    with store.unit_of_work() as session:
        sale = Sale(
            created_at=now,
            subtotal_cents=subtotal_cents,
            cash_received_cents=cash_received_cents,
            change_cents=change_cents,
        )
        session.add(sale)
        session.flush()  # ensure sale.id exists before lines reference it

        for line in lines:
            product = products[line.product_id]
            frozen_cost = product.avg_cost_cents

            session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                qty=line.qty,
                price_cents=line.unit_price_cents,
                unit_cost_cents=frozen_cost,
            ))
            record_sale_move(
                session,
                product,
                quantity=line.qty,
                unit_cost_cents=frozen_cost,
                occurred_at=now,
                comment=f"Sale {sale.id}",
            )

        sale_id = sale.id

    log.info(
        "Sale %s finalized: %s line(s), subtotal=%s change=%s",
        sale_id, len(lines), subtotal_cents, change_cents,
    )
    return {
        "sale_id": sale_id,
        "subtotal_cents": subtotal_cents,
        "change_cents": change_cents,
    }


def get_sale(store: LedgerStore, sale_id) -> Sale:
    sale_id = require_id("sale_id", sale_id)
    sale = store.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    store: LedgerStore,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[Sale]:
    """Sales newest first; start/end are inclusive UTC-naive bounds."""
    q = store.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
