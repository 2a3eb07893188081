import fnmatch
import os
import tempfile
import uuid
from decimal import Decimal

import pytest

from config import Config
from betterbeing import create_app
from betterbeing.database import Base, get_engine, get_session
from betterbeing.models import User, Product, CartItem
from betterbeing.services.auth_service import issue_token
from betterbeing.services.cache_service import get_cache

_db_fd, _db_path = tempfile.mkstemp(prefix='betterbeing-test-', suffix='.db')


class TestConfig(Config):
    """SQLite file by default; point TEST_DATABASE_URL at PostgreSQL for row-lock coverage."""
    TESTING = True
    DEBUG = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', f'sqlite:///{_db_path}')
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    JWT_SECRET = 'test-jwt-secret'
    TAX_RATE = '0.15'
    FREE_SHIPPING_THRESHOLD = '500'
    SHIPPING_FEE = '50'


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app(TestConfig)
    with app.app_context():
        Base.metadata.create_all(get_engine())
    yield app
    with app.app_context():
        Base.metadata.drop_all(get_engine())
    os.close(_db_fd)
    os.unlink(_db_path)


@pytest.fixture(autouse=True)
def app_context(app):
    """Every test runs inside one app context; tables are emptied afterwards."""
    with app.app_context():
        yield
        session = get_session()
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session shared with the request handlers."""
    return get_session()


def _make_user(session, prefix, is_admin=False, loyalty_points=0):
    suffix = str(uuid.uuid4())[:8]
    user = User(
        email=f'{prefix}-{suffix}@test.com',
        full_name=prefix.title(),
        active=True,
        is_admin=is_admin,
        loyalty_points=loyalty_points
    )
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def user(session):
    """Customer with an empty cart and no points."""
    return _make_user(session, 'customer')


@pytest.fixture(scope='function')
def other_user(session):
    """Second customer for ownership checks."""
    return _make_user(session, 'other')


@pytest.fixture(scope='function')
def admin(session):
    """Back-office admin."""
    return _make_user(session, 'admin', is_admin=True)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for catalog products."""
    def _make(name='Test Product', price='100.00', stock_count=5, in_stock=True, category='Supplements'):
        product = Product(
            name=name,
            description=f'{name} description',
            category=category,
            price=Decimal(price),
            stock_count=stock_count,
            in_stock=in_stock
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product):
    """R100.00 product with 5 units in stock."""
    return make_product(name='Product A', price='100.00', stock_count=5)


@pytest.fixture(scope='function')
def put_in_cart(session):
    """Write a cart line directly."""
    def _put(user, product, quantity, size=None):
        line = CartItem(user_id=user.id, product_id=product.id, quantity=quantity, size=size)
        session.add(line)
        session.commit()
        return line
    return _put


@pytest.fixture(scope='function')
def auth_headers():
    """Bearer header for a user."""
    def _headers(user):
        return {'Authorization': f'Bearer {issue_token(user)}'}
    return _headers


@pytest.fixture(scope='function')
def shipping_address():
    return {'street': '12 Long Street', 'city': 'Cape Town', 'postalCode': '8001', 'country': 'ZA'}


class InMemoryRedis:
    """Just enough of the redis client API for CacheService."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def scan_iter(self, match, count=None):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


@pytest.fixture(scope='function')
def memory_redis(app, monkeypatch):
    """Back the app's cache with an in-memory client for one test."""
    client = InMemoryRedis()
    monkeypatch.setattr(get_cache(), 'client', client)
    return client
