import pytest

from tillbook.errors import (
    InsufficientPayment,
    InsufficientStock,
    NotFound,
    PersistenceFailure,
    ValidationError,
)
from tillbook.models import Product, Sale, SaleItem, StockMove, REASON_SALE
from tillbook.services import inventory_service, reporting_service, sales_service


def _counts(store):
    session = store.session
    return (
        session.query(Sale).count(),
        session.query(SaleItem).count(),
        session.query(StockMove).filter_by(reason=REASON_SALE).count(),
    )


def test_finalize_sale_writes_sale_items_and_moves(store, make_product, clock):
    p = make_product(stock=5, unit_cost_cents=60)

    result = sales_service.finalize_sale(
        store,
        cart=[{"product_id": p.id, "qty": 2, "unit_price_cents": 100}],
        cash_received_cents=500,
        clock=clock,
    )

    assert result == {"sale_id": result["sale_id"], "subtotal_cents": 200, "change_cents": 300}

    sale = sales_service.get_sale(store, result["sale_id"])
    assert sale.cash_received_cents == 500
    assert sale.created_at == clock()
    assert len(sale.items) == 1
    item = sale.items[0]
    assert (item.qty, item.price_cents, item.unit_cost_cents) == (2, 100, 60.0)
    assert item.line_total_cents == 200

    move = store.session.query(StockMove).filter_by(reason=REASON_SALE).one()
    assert move.delta == -2
    assert move.unit_cost_cents == 60.0
    assert move.comment == f"Sale {sale.id}"
    assert move.created_at == sale.created_at

    assert store.session.get(Product, p.id).stock == 3
    assert inventory_service.reconcile(store) == []


def test_exact_cash_gives_zero_change(store, make_product, clock):
    p = make_product(stock=1, unit_cost_cents=10)
    result = sales_service.finalize_sale(
        store,
        cart=[{"product_id": p.id, "qty": 1, "unit_price_cents": 250}],
        cash_received_cents=250,
        clock=clock,
    )
    assert result["change_cents"] == 0


def test_cart_price_is_frozen_not_catalog_price(store, make_product, clock):
    p = make_product(price_cents=100, stock=3, unit_cost_cents=10)
    result = sales_service.finalize_sale(
        store,
        cart=[{"product_id": p.id, "qty": 1, "unit_price_cents": 80}],
        cash_received_cents=100,
        clock=clock,
    )
    sale = sales_service.get_sale(store, result["sale_id"])
    assert sale.items[0].price_cents == 80
    assert sale.subtotal_cents == 80


def test_insufficient_payment_writes_nothing(store, make_product, clock):
    p = make_product(stock=5, unit_cost_cents=60)

    with pytest.raises(InsufficientPayment) as exc_info:
        sales_service.finalize_sale(
            store,
            cart=[{"product_id": p.id, "qty": 2, "unit_price_cents": 100}],
            cash_received_cents=150,
            clock=clock,
        )

    assert exc_info.value.details["missing_cents"] == 50
    assert _counts(store) == (0, 0, 0)
    assert store.session.get(Product, p.id).stock == 5


def test_payment_is_checked_before_stock(store, make_product, clock):
    p = make_product(stock=1, unit_cost_cents=60)
    with pytest.raises(InsufficientPayment):
        sales_service.finalize_sale(
            store,
            cart=[{"product_id": p.id, "qty": 5, "unit_price_cents": 100}],
            cash_received_cents=0,
            clock=clock,
        )


def test_insufficient_stock_writes_nothing(store, make_product, clock):
    a = make_product(name="Tea", stock=10, unit_cost_cents=20)
    b = make_product(name="Milk", stock=1, unit_cost_cents=30)

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.finalize_sale(
            store,
            cart=[
                {"product_id": a.id, "qty": 2, "unit_price_cents": 50},
                {"product_id": b.id, "qty": 3, "unit_price_cents": 70},
            ],
            cash_received_cents=1000,
            clock=clock,
        )

    err = exc_info.value
    assert (err.product_id, err.requested, err.available, err.shortfall) == (b.id, 3, 1, 2)
    assert _counts(store) == (0, 0, 0)
    assert store.session.get(Product, a.id).stock == 10


def test_quantities_of_repeated_product_lines_are_summed(store, make_product, clock):
    p = make_product(stock=5, unit_cost_cents=20)
    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.finalize_sale(
            store,
            cart=[
                {"product_id": p.id, "qty": 3, "unit_price_cents": 50},
                {"product_id": p.id, "qty": 3, "unit_price_cents": 50},
            ],
            cash_received_cents=1000,
            clock=clock,
        )
    assert exc_info.value.requested == 6


def test_unknown_product_in_cart(store, clock):
    with pytest.raises(NotFound):
        sales_service.finalize_sale(
            store,
            cart=[{"product_id": 42, "qty": 1, "unit_price_cents": 50}],
            cash_received_cents=50,
            clock=clock,
        )


@pytest.mark.parametrize(
    "cart",
    [
        [],
        None,
        {"product_id": 1, "qty": 1, "unit_price_cents": 1},
        [{"product_id": 1, "qty": 0, "unit_price_cents": 10}],
        [{"product_id": 1, "qty": 1}],
        [{"product_id": 1, "qty": 1, "unit_price_cents": -5}],
        [{"product_id": 1, "qty": 1, "unit_price_cents": 10, "discount": 1}],
    ],
)
def test_malformed_carts_are_rejected(store, make_product, clock, cart):
    make_product(stock=5, unit_cost_cents=1)
    with pytest.raises(ValidationError):
        sales_service.finalize_sale(store, cart=cart, cash_received_cents=100, clock=clock)
    assert _counts(store) == (0, 0, 0)


def test_cart_line_errors_name_the_line(store, clock):
    with pytest.raises(ValidationError) as exc_info:
        sales_service.parse_cart([
            {"product_id": 1, "qty": 1, "unit_price_cents": 10},
            {"product_id": 1, "qty": "x", "unit_price_cents": 10},
        ])
    assert exc_info.value.message.startswith("cart line 2:")


def test_failure_mid_sale_rolls_back_every_write(store, make_product, clock, monkeypatch):
    a = make_product(name="Tea", stock=4, unit_cost_cents=20)
    b = make_product(name="Milk", stock=4, unit_cost_cents=30)

    real_record = sales_service.record_sale_move
    calls = []

    def flaky_record(session, product, **kwargs):
        calls.append(product.id)
        if len(calls) == 2:
            raise PersistenceFailure("Ledger write failed")
        return real_record(session, product, **kwargs)

    monkeypatch.setattr(sales_service, "record_sale_move", flaky_record)

    with pytest.raises(PersistenceFailure):
        sales_service.finalize_sale(
            store,
            cart=[
                {"product_id": a.id, "qty": 1, "unit_price_cents": 50},
                {"product_id": b.id, "qty": 1, "unit_price_cents": 70},
            ],
            cash_received_cents=200,
            clock=clock,
        )

    assert calls == [a.id, b.id]
    assert _counts(store) == (0, 0, 0)
    assert store.session.get(Product, a.id).stock == 4
    assert store.session.get(Product, b.id).stock == 4
    assert inventory_service.reconcile(store) == []


def test_frozen_cost_survives_later_receipts(store, make_product, clock):
    p = make_product(stock=2, unit_cost_cents=60)
    result = sales_service.finalize_sale(
        store,
        cart=[{"product_id": p.id, "qty": 1, "unit_price_cents": 100}],
        cash_received_cents=100,
        clock=clock,
    )

    inventory_service.receive_stock(store, product_id=p.id, quantity=9, unit_cost_cents=160)
    assert store.session.get(Product, p.id).avg_cost_cents == pytest.approx(150.0)

    sale = sales_service.get_sale(store, result["sale_id"])
    assert sale.items[0].unit_cost_cents == 60.0

    report = reporting_service.daily_report(store, "2024-01-05")
    assert report["profit_cents"] == 40


def test_sales_are_immutable(store, make_product, clock):
    p = make_product(stock=2, unit_cost_cents=60)
    result = sales_service.finalize_sale(
        store,
        cart=[{"product_id": p.id, "qty": 1, "unit_price_cents": 100}],
        cash_received_cents=100,
        clock=clock,
    )
    sale = sales_service.get_sale(store, result["sale_id"])

    with pytest.raises(ValueError):
        with store.unit_of_work():
            sale.subtotal_cents = 1

    with pytest.raises(ValueError):
        with store.unit_of_work():
            sale.items[0].unit_cost_cents = 0.0

    assert sales_service.get_sale(store, result["sale_id"]).subtotal_cents == 100


def test_get_sale_not_found(store):
    with pytest.raises(NotFound):
        sales_service.get_sale(store, 1)


def test_list_sales_newest_first_within_bounds(store, make_product, clock):
    p = make_product(stock=10, unit_cost_cents=5)
    ids = []
    for _ in range(3):
        ids.append(sales_service.finalize_sale(
            store,
            cart=[{"product_id": p.id, "qty": 1, "unit_price_cents": 10}],
            cash_received_cents=10,
            clock=clock,
        )["sale_id"])
        clock.advance(hours=1)

    newest_first = [s.id for s in sales_service.list_sales(store)]
    assert newest_first == list(reversed(ids))

    first_two_hours = sales_service.list_sales(
        store, start=clock.now.replace(hour=12), end=clock.now.replace(hour=13),
    )
    assert [s.id for s in first_two_hours] == [ids[1], ids[0]]


@pytest.mark.parametrize("bad_id", [True, "x", [1]])
def test_malformed_ids_are_validation_errors(store, make_product, clock, bad_id):
    make_product(stock=5, unit_cost_cents=10)
    with pytest.raises(ValidationError) as exc_info:
        sales_service.finalize_sale(
            store,
            cart=[{"product_id": bad_id, "qty": 1, "unit_price_cents": 10}],
            cash_received_cents=10,
            clock=clock,
        )
    assert exc_info.value.message.startswith("cart line 1: product_id")
    with pytest.raises(ValidationError):
        sales_service.get_sale(store, bad_id)
    assert _counts(store) == (0, 0, 0)
