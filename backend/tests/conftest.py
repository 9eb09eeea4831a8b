"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, outlet/product fixtures, and test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.decorators import ACTOR_HEADER
from stockledger.services import catalog_service, outlet_service, outlet_stock_service


ACTOR_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF': 0,
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
def actor_headers():
    return {ACTOR_HEADER: str(ACTOR_ID)}


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.config['OPNAME_BASELINE_DRIFT_POLICY'] = 'flag'

        yield db.session

        # Cleanup after test
        db.session.rollback()


def committed(result):
    """Assert a service Result succeeded, commit, and return its value."""
    assert result.success, result.message
    db.session.commit()
    return result.value


@pytest.fixture(scope='function')
def outlet_a(db_session):
    """Create Outlet A (JKT01)."""
    return committed(outlet_service.create_outlet("JKT01", "Jakarta Pusat"))


@pytest.fixture(scope='function')
def outlet_b(db_session):
    """Create Outlet B (BDG01)."""
    return committed(outlet_service.create_outlet("BDG01", "Bandung"))


@pytest.fixture(scope='function')
def product(db_session):
    """Create a product with aggregate stock 100."""
    return committed(
        catalog_service.create_product("Teh Botol 350ml", barcode="8991234567890", stock_quantity=100)
    )


@pytest.fixture(scope='function')
def product_b(db_session):
    """Create a second product with aggregate stock 5."""
    return committed(
        catalog_service.create_product("Indomie Goreng", barcode="8998866200011", stock_quantity=5)
    )


def stock_outlet(outlet_id, product_id, quantity):
    """Put quantity of product at outlet and commit."""
    outlet_stock_service.set_outlet_stock(outlet_id, product_id, quantity)
    db.session.commit()
