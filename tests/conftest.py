"""Shared fixtures: a throwaway SQLite database per test and wired services."""
import os

# Exporters and profiling off, instant payments, empty catalog
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""
os.environ["PYROSCOPE_SERVER_ADDRESS"] = ""
os.environ["PAYMENT_SIMULATION_DELAY_SECONDS"] = "0"
os.environ["SEED_DATABASE"] = "false"

from decimal import Decimal

import fakeredis
import pytest

from database import Database
from models import Address, CartItem, Order, OrderItem, Product
from services.address_service import AddressService
from services.cart_service import CartService
from services.inventory_ledger import InventoryLedger
from services.order_assembler import OrderAssembler
from services.order_service import OrderService
from services.payment_simulator import PaymentSimulator

USER_ID = "user_123"
OTHER_USER_ID = "user_789"


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'storefront.db'}")
    database.init(seed=False)
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cart_service(redis_client):
    return CartService(redis_client)


@pytest.fixture
def inventory():
    return InventoryLedger()


@pytest.fixture
def address_service():
    return AddressService()


@pytest.fixture
def order_service(cart_service, inventory, address_service):
    return OrderService(cart_service, inventory, OrderAssembler(), address_service)


@pytest.fixture
def payment_simulator():
    return PaymentSimulator(delay_seconds=0)


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price="10.00", stock=10, is_active=True):
        product = Product(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            is_active=is_active
        )
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def make_address(db):
    def _make(user_id=USER_ID, name="Li Lei", is_default=False, city="Hangzhou"):
        address = Address(
            user_id=user_id,
            name=name,
            phone="13800138000",
            province="Zhejiang",
            city=city,
            district="Xihu",
            detail="1 Wensan Road",
            is_default=is_default
        )
        db.add(address)
        db.commit()
        return address
    return _make


@pytest.fixture
def put_in_cart(db):
    def _put(product, quantity, user_id=USER_ID):
        item = CartItem(user_id=user_id, product_id=product.id, quantity=quantity)
        db.add(item)
        db.commit()
        return item
    return _put


@pytest.fixture
def snapshot(db):
    """Comparable picture of every table checkout touches."""
    def _snapshot():
        db.expire_all()
        return {
            "products": sorted((p.id, p.stock) for p in db.query(Product).all()),
            "cart": sorted((c.user_id, c.product_id, c.quantity) for c in db.query(CartItem).all()),
            "orders": db.query(Order).count(),
            "order_items": db.query(OrderItem).count(),
        }
    return _snapshot
