import pytest

from tillbook.errors import NotFound, PersistenceFailure
from tillbook.models import ConfigEntry, Product


def test_unit_of_work_commits_on_exit(store):
    with store.unit_of_work() as session:
        session.add(ConfigEntry(key="currency", value="PLN"))

    store.session.expunge_all()
    assert store.session.get(ConfigEntry, "currency").value == "PLN"


def test_unit_of_work_rolls_back_on_domain_error(store):
    with pytest.raises(NotFound):
        with store.unit_of_work() as session:
            session.add(ConfigEntry(key="currency", value="PLN"))
            session.flush()
            raise NotFound("Product not found")

    assert store.session.query(ConfigEntry).count() == 0


def test_database_errors_become_persistence_failure(store):
    with pytest.raises(PersistenceFailure) as exc_info:
        with store.unit_of_work() as session:
            session.add(Product(name="A", sku="DUP", price_cents=1, stock=0, avg_cost_cents=0.0))
            session.add(Product(name="B", sku="DUP", price_cents=1, stock=0, avg_cost_cents=0.0))

    assert exc_info.value.status_code == 500
    assert "cause" in exc_info.value.details
    assert store.session.query(Product).count() == 0


def test_check_constraint_blocks_negative_stock(store):
    with pytest.raises(PersistenceFailure):
        with store.unit_of_work() as session:
            session.add(Product(name="A", price_cents=1, stock=-1, avg_cost_cents=0.0))
