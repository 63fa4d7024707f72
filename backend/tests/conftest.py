"""
Pytest fixtures for the almacen backend tests.

Provides an in-memory database, per-test cleanup, and product/register
fixtures built through the services so the ledgers start consistent.
"""

import pytest

from almacen import create_app
from almacen.extensions import db
from almacen.services import products_service, register_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CASH_REGISTER_ENABLED': True,
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
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.config['CASH_REGISTER_ENABLED'] = True

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def product(db_session):
    """Product with 10 units on hand (posted as an 'inicial' movement)."""
    return products_service.create_product(name="Yerba 1kg", stock=10, cost=800)


@pytest.fixture(scope='function')
def other_product(db_session):
    return products_service.create_product(name="Azúcar 1kg", stock=5, cost=400)


@pytest.fixture(scope='function')
def open_register(db_session):
    """Open cash register session with 1000 in the drawer."""
    return register_service.open_register(opening_amount=1000, note="Turno mañana")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "concurrency: Threaded tests on a file-backed database")
