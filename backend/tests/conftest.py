"""
Pytest fixtures for opscore backend tests.

Provides test database setup, tenant fixtures, and test client.
"""

from decimal import Decimal

import pytest
from opscore import create_app
from opscore.config import TestConfig
from opscore.extensions import db
from opscore.models import Organization, Store, WorkflowRecord
from opscore.services.workflow_registry import build_default_registry


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def registry(app):
    """The registry the app was built with."""
    return app.extensions["workflow_registry"]


@pytest.fixture(scope='session')
def default_registry():
    return build_default_registry()


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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Repairs", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Laundry", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def store_a(db_session, org_a):
    """Create Store A in Organization A."""
    store = Store(org_id=org_a.id, name="Store A1", code="A1", business_type="repair")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session, org_b):
    """Create Store B in Organization B."""
    store = Store(org_id=org_b.id, name="Store B1", code="B1", business_type="laundry")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def repair_order(db_session, store_a):
    """A repair order in its initial state."""
    record = WorkflowRecord(
        store_id=store_a.id,
        entity_type="repair_order",
        reference="RO-1001",
        status="received",
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def standard_items():
    """qty 2 x 100.00 at 10% tax: subtotal 200, tax 20, total 220."""
    return [
        {"description": "Screen repair", "quantity": 2, "unit_price": 100, "discount": 0, "tax_rate": 10},
    ]


def store_headers(store) -> dict:
    """Helper to create store context headers."""
    store_id = store if isinstance(store, int) else store.id
    return {'X-Store-Id': str(store_id)}


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
