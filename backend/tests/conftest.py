"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, users for every role, a small catalog and the
test client.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Category, Product, Supplier, User
from stockroom.models.auth import ROLES
from stockroom.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INSIGHTS_FORECAST_URL': 'http://insights.test/forecast',
        'INSIGHTS_PROMOTION_URL': 'http://insights.test/promotion',
        'INSIGHTS_API_KEY': 'test-key',
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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def users(db_session, password_hash):
    """One active user per role, keyed by role name (username == role)."""
    created = {}
    for role in ROLES:
        user = User(
            username=role,
            email=f"{role}@stockroom.test",
            password_hash=password_hash,
            role=role,
        )
        db_session.add(user)
        created[role] = user
    db_session.commit()
    return created


@pytest.fixture(scope='function')
def admin_user(users):
    return users["admin"]


@pytest.fixture(scope='function')
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin", TEST_PASSWORD))


@pytest.fixture(scope='function')
def manager_headers(client, users):
    return auth_headers(get_auth_token(client, "manager", TEST_PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, users):
    return auth_headers(get_auth_token(client, "staff", TEST_PASSWORD))


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beer")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Modelo Distributors", contact_email="orders@modelo.test")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def corona(db_session, category, supplier):
    """50 units on hand, reorder at 20, sells for 2.50."""
    product = Product(
        sku="BEER-COR-12",
        name="Corona",
        category_id=category.id,
        supplier_id=supplier.id,
        cost_price_cents=150,
        retail_price_cents=250,
        quantity=50,
        reorder_level=20,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for extra products: make_product("SKU", quantity=5, ...)."""
    def _make(sku, *, name=None, quantity=0, reorder_level=0, cost=100, retail=200, supplier_id=None):
        product = Product(
            sku=sku,
            name=name or sku,
            cost_price_cents=cost,
            retail_price_cents=retail,
            quantity=quantity,
            reorder_level=reorder_level,
            supplier_id=supplier_id,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def fresh(db_session, obj):
    """Reload `obj` after changes committed by a request or another session."""
    db_session.expire_all()
    return db_session.get(type(obj), obj.id)
