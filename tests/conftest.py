import pytest

from api import MockCommerceApi
from auth import AuthService
from cart import CartManager
from database import seed_database
from schemas import Product
from storage import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def db():
    return seed_database()


@pytest.fixture
def auth_service(db, storage):
    return AuthService(db, storage, login_delay=0)


@pytest.fixture
def api(db, auth_service):
    return MockCommerceApi(db, auth_service, min_delay=0, max_delay=0)


@pytest.fixture
def cart(storage):
    return CartManager(storage)


@pytest.fixture
def make_product():
    def _make(pid="p1", name="Test Product", price=5.0, stock=10, category="Dairy", supplier="Fresh Farms"):
        return Product(
            id=pid,
            name=name,
            category=category,
            price=price,
            stock=stock,
            reorder_level=2,
            supplier=supplier,
        )
    return _make
