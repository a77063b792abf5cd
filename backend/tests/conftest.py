"""
Pytest fixtures for Tillbook backend tests.

Provides the application (in-memory SQLite, scheduler off), a fresh schema
per test, the ledger store, a controllable clock and a recording notifier.
"""

from datetime import datetime, timedelta

import pytest

from tillbook import create_app
from tillbook.errors import NotificationFailure
from tillbook.extensions import db
from tillbook.services import catalog_service, inventory_service


class FakeNotifier:
    """Records sent texts; set fail_with to make the next sends fail."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, text):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(text)


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'SCHEDULER_ENABLED': False,
            'DEFAULT_CURRENCY': 'PLN',
        },
        notifier=FakeNotifier(),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def fresh_schema(app):
    """Drop and recreate every table so each test starts from an empty ledger."""
    db.session.remove()
    db.drop_all()
    db.create_all()
    yield
    db.session.rollback()
    db.session.remove()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['ledger_store']


@pytest.fixture
def notifier(app):
    n = app.extensions['report_notifier']
    n.sent.clear()
    n.fail_with = None
    yield n
    n.fail_with = None


@pytest.fixture
def failing_notifier(notifier):
    notifier.fail_with = NotificationFailure("Telegram API timed out", details={"timeout_seconds": 10})
    return notifier


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 5, 12, 0, 0))


@pytest.fixture
def make_product(store):
    """Factory: create a product and optionally receive opening stock."""

    def _make(name="Coffee beans", price_cents=100, sku=None, category=None, stock=0, unit_cost_cents=0):
        created = catalog_service.create_product(
            store,
            patch={"name": name, "sku": sku, "price_cents": price_cents, "category": category},
        )
        if stock:
            inventory_service.receive_stock(
                store,
                product_id=created["id"],
                quantity=stock,
                unit_cost_cents=unit_cost_cents,
            )
        return catalog_service.get_product(store, created["id"])

    return _make
