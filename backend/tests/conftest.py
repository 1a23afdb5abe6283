"""
Pytest fixtures for MesaPOS backend tests.

Provides test database setup, users, products, an open cash session and
the test client.
"""

import pytest

from mesapos import create_app
from mesapos.extensions import db
from mesapos.models import Product, User
from mesapos.services import auth_service, cash_session_service


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_NAME': 'Test Cafe',
        'RECEIPT_OUTPUT_DIR': str(tmp_path_factory.mktemp('receipts')),
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
def admin_user(db_session):
    return auth_service.create_user("admin", "4821", role=User.ROLE_ADMIN)


@pytest.fixture(scope='function')
def seller_user(db_session):
    return auth_service.create_user("ana", "5931", role=User.ROLE_SELLER)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, price_cents, stock)."""
    def _make(name="Coffee", price_cents=1000, stock=10, is_active=True):
        product = Product(name=name, price_cents=price_cents, stock=stock, is_active=is_active)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def coffee(make_product):
    return make_product("Coffee", price_cents=1000, stock=10)


@pytest.fixture(scope='function')
def sandwich(make_product):
    return make_product("Sandwich", price_cents=750, stock=5)


@pytest.fixture(scope='function')
def open_session(db_session, admin_user):
    """Cash session opened with a 100.00 float."""
    return cash_session_service.open_cash_session(10000, admin_user.id)
