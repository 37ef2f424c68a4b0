from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from main import create_app
from models import Category, CartItem, Product
from services.inventory_ledger import InventoryLedger

USER = {"Authorization": "Bearer user-token-123"}
OTHER_USER = {"Authorization": "Bearer test-token-789"}
ADMIN = {"Authorization": "Bearer admin-token-456"}

ADDRESS = {
    "name": "Li Lei",
    "phone": "13800138000",
    "province": "Zhejiang",
    "city": "Hangzhou",
    "district": "Xihu",
    "detail": "1 Wensan Road",
    "is_default": True,
}


@pytest.fixture
def client(database):
    app = create_app(
        database=database,
        redis_client=fakeredis.FakeRedis(decode_responses=True),
        payment_delay_seconds=0,
        seed=False
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def add_product(database):
    def _add(name="Widget", price="10.00", stock=10, is_active=True, category_slug=None,
             description=""):
        session = database.session()
        try:
            category = None
            if category_slug:
                category = session.query(Category).filter(Category.slug == category_slug).first()
                if category is None:
                    category = Category(name=category_slug.title(), slug=category_slug)
            product = Product(
                name=name,
                description=description,
                price=Decimal(price),
                stock=stock,
                is_active=is_active,
                category=category
            )
            session.add(product)
            session.commit()
            return product.id
        finally:
            session.close()
    return _add


def _stock(database, product_id):
    session = database.session()
    try:
        return session.get(Product, product_id).stock
    finally:
        session.close()


def _checkout(client, product_id, quantity, headers=USER):
    address = client.post("/user/addresses", json=ADDRESS, headers=headers)
    assert address.status_code == 201
    added = client.post("/cart", json={"product_id": product_id, "quantity": quantity}, headers=headers)
    assert added.status_code == 200
    return client.post("/orders", json={"address_id": address.json()["id"]}, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_login(client):
    response = client.post("/auth/login", json={"username": "user123", "password": "password123"})

    assert response.status_code == 200
    assert response.json()["token"] == "user-token-123"
    assert response.json()["role"] == "USER"


def test_login_rejects_bad_password(client):
    response = client.post("/auth/login", json={"username": "user123", "password": "nope"})

    assert response.status_code == 401


@pytest.mark.parametrize("method,path", [
    ("get", "/cart"),
    ("get", "/orders"),
    ("post", "/orders"),
    ("post", "/payment"),
    ("get", "/user/addresses"),
])
def test_requires_sign_in(client, method, path):
    response = getattr(client, method)(path)

    assert response.status_code == 401


def _names(response):
    assert response.status_code == 200
    return [p["name"] for p in response.json()["products"]]


def test_products_hide_inactive(client, add_product):
    visible = add_product(name="Novel", category_slug="books")
    add_product(name="Lamp", category_slug="furniture")
    hidden = add_product(name="Discontinued", is_active=False)

    page = client.get("/products").json()
    assert [p["name"] for p in page["products"]] == ["Lamp", "Novel"]
    assert page["total"] == 2
    assert page["products"][0]["price"] == "10.00"
    assert [p["id"] for p in client.get("/products?category=books").json()["products"]] == [visible]
    assert client.get(f"/products/{hidden}").status_code == 404


def test_products_list_categories_for_filter(client, add_product):
    add_product(name="Novel", category_slug="books")
    add_product(name="Lamp", category_slug="furniture")

    categories = client.get("/products").json()["categories"]

    assert [c["slug"] for c in categories] == ["books", "furniture"]


def test_products_keyword_matches_name_or_description(client, add_product):
    add_product(name="Gaming Laptop")
    add_product(name="Sleeve", description="Padded case for any laptop")
    add_product(name="Desk Chair")
    add_product(name="Old Laptop", is_active=False)

    names = _names(client.get("/products", params={"keyword": "LAPTOP", "sort_by": "name", "sort_order": "asc"}))

    assert names == ["Gaming Laptop", "Sleeve"]
    assert _names(client.get("/products", params={"keyword": "tablet"})) == []


def test_products_sorting(client, add_product):
    add_product(name="Mid", price="20.00", stock=5)
    add_product(name="Cheap", price="5.00", stock=9)
    add_product(name="Pricey", price="100.00", stock=1)

    assert _names(client.get("/products", params={"sort_by": "price", "sort_order": "asc"})) == [
        "Cheap", "Mid", "Pricey"
    ]
    assert _names(client.get("/products", params={"sort_by": "price", "sort_order": "desc"})) == [
        "Pricey", "Mid", "Cheap"
    ]
    assert _names(client.get("/products", params={"sort_by": "stock"})) == ["Cheap", "Mid", "Pricey"]
    assert _names(client.get("/products")) == ["Pricey", "Cheap", "Mid"]


def test_products_reject_unknown_sort_column(client):
    assert client.get("/products", params={"sort_by": "is_active"}).status_code == 422
    assert client.get("/products", params={"sort_order": "sideways"}).status_code == 422


def test_products_pagination(client, add_product):
    for n in range(16):
        add_product(name=f"Item {n:02d}")

    first = client.get("/products", params={"sort_by": "name", "sort_order": "asc"}).json()
    second = client.get("/products", params={"sort_by": "name", "sort_order": "asc", "page": 2}).json()

    assert first["total"] == 16
    assert first["page_size"] == 12
    assert first["total_pages"] == 2
    assert len(first["products"]) == 12
    assert [p["name"] for p in second["products"]] == ["Item 12", "Item 13", "Item 14", "Item 15"]
    assert second["page"] == 2

    small = client.get("/products", params={"page_size": 5, "page": 4}).json()
    assert small["total_pages"] == 4
    assert len(small["products"]) == 1
    assert client.get("/products", params={"page": 9}).json()["products"] == []
    assert client.get("/products", params={"page": 0}).status_code == 422


def test_checkout_and_payment_flow(client, database, add_product):
    a = add_product(name="A", price="10.00", stock=10)
    b = add_product(name="B", price="5.50", stock=4)
    client.post("/cart", json={"product_id": b, "quantity": 1}, headers=USER)

    created = _checkout(client, a, 2)

    assert created.status_code == 201
    order = created.json()
    assert order["status"] == "PENDING"
    assert order["total_amount"] == "25.50"
    assert order["address"]["city"] == "Hangzhou"
    assert client.get("/cart", headers=USER).json()["items"] == []
    assert client.get("/cart/count", headers=USER).json() == {"count": 0}
    assert _stock(database, a) == 8
    assert _stock(database, b) == 3

    paid = client.post("/payment", json={"order_id": order["id"]}, headers=USER)
    assert paid.status_code == 200
    assert paid.json()["status"] == "PAID"

    again = client.post("/payment", json={"order_id": order["id"]}, headers=USER)
    assert again.status_code == 409
    assert again.json() == {
        "success": False,
        "code": "INVALID_TRANSITION",
        "message": "Cannot change order status from PAID to PAID"
    }

    history = client.get("/orders", headers=USER).json()["orders"]
    assert [o["id"] for o in history] == [order["id"]]
    assert client.get(f"/orders/{order['id']}", headers=OTHER_USER).status_code == 404


def test_insufficient_stock_is_conflict(client, database, add_product):
    product_id = add_product(name="Scarce Gadget", stock=5)
    address = client.post("/user/addresses", json=ADDRESS, headers=USER).json()
    client.post("/cart", json={"product_id": product_id, "quantity": 5}, headers=USER)
    client.put(f"/admin/products/{product_id}/stock", json={"stock": 3}, headers=ADMIN)

    response = client.post("/orders", json={"address_id": address["id"]}, headers=USER)

    assert response.status_code == 409
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    assert "Scarce Gadget" in response.json()["message"]
    assert _stock(database, product_id) == 3

    session = database.session()
    try:
        assert session.query(CartItem).count() == 1
    finally:
        session.close()


def test_empty_cart_is_bad_request(client):
    address = client.post("/user/addresses", json=ADDRESS, headers=USER).json()

    response = client.post("/orders", json={"address_id": address["id"]}, headers=USER)

    assert response.status_code == 400
    assert response.json()["code"] == "EMPTY_CART"


def test_foreign_address_is_bad_request(client, add_product):
    theirs = client.post("/user/addresses", json=ADDRESS, headers=OTHER_USER).json()
    product_id = add_product()
    client.post("/cart", json={"product_id": product_id, "quantity": 1}, headers=USER)

    response = client.post("/orders", json={"address_id": theirs["id"]}, headers=USER)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ADDRESS"


def test_address_phone_is_validated(client):
    response = client.post("/user/addresses", json={**ADDRESS, "phone": "12345"}, headers=USER)

    assert response.status_code == 422


def test_cart_quantity_is_bounded(client, add_product):
    product_id = add_product(stock=500)

    response = client.post("/cart", json={"product_id": product_id, "quantity": 100}, headers=USER)

    assert response.status_code == 422


def test_admin_requires_admin_role(client):
    assert client.get("/admin/orders", headers=USER).status_code == 403


def test_admin_status_changes(client, add_product):
    order = _checkout(client, add_product(), 1).json()

    premature = client.patch(f"/admin/orders/{order['id']}", json={"status": "SHIPPED"}, headers=ADMIN)
    assert premature.status_code == 409

    mark_paid = client.patch(f"/admin/orders/{order['id']}", json={"status": "PAID"}, headers=ADMIN)
    assert mark_paid.status_code == 409

    client.post("/payment", json={"order_id": order["id"]}, headers=USER)
    shipped = client.patch(f"/admin/orders/{order['id']}", json={"status": "SHIPPED"}, headers=ADMIN)
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "SHIPPED"

    listed = client.get("/admin/orders?status=SHIPPED", headers=ADMIN).json()["orders"]
    assert [o["id"] for o in listed] == [order["id"]]


def test_admin_stock_cannot_go_negative(client, add_product):
    product_id = add_product()

    response = client.put(f"/admin/products/{product_id}/stock", json={"stock": -1}, headers=ADMIN)

    assert response.status_code == 422


def _cart_lines(database):
    session = database.session()
    try:
        return sorted((c.user_id, c.product_id, c.quantity) for c in session.query(CartItem).all())
    finally:
        session.close()


def test_storage_failure_is_service_unavailable(client, database, add_product, monkeypatch):
    product_id = add_product(name="Router", stock=4)
    address = client.post("/user/addresses", json=ADDRESS, headers=USER).json()
    client.post("/cart", json={"product_id": product_id, "quantity": 2}, headers=USER)
    cart_before = _cart_lines(database)

    def locked(self, db, product_id, quantity, product_name=None):
        raise OperationalError(
            "UPDATE products SET stock=(products.stock - ?) WHERE products.id = ?",
            (quantity, product_id),
            Exception("database is locked")
        )

    monkeypatch.setattr(InventoryLedger, "decrement", locked)

    response = client.post("/orders", json={"address_id": address["id"]}, headers=USER)

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert response.json()["code"] == "STORAGE_FAILURE"
    assert "UPDATE" not in response.text
    assert "locked" not in response.text
    assert _stock(database, product_id) == 4
    assert _cart_lines(database) == cart_before


def test_unexpected_error_is_generic_500(database, add_product, monkeypatch):
    app = create_app(
        database=database,
        redis_client=fakeredis.FakeRedis(decode_responses=True),
        payment_delay_seconds=0,
        seed=False
    )
    product_id = add_product(name="Router", stock=4)

    def broken(self, db, product_id, quantity, product_name=None):
        raise RuntimeError("ledger exploded at /srv/secret/path")

    monkeypatch.setattr(InventoryLedger, "decrement", broken)

    with TestClient(app, raise_server_exceptions=False) as client:
        address = client.post("/user/addresses", json=ADDRESS, headers=USER).json()
        client.post("/cart", json={"product_id": product_id, "quantity": 1}, headers=USER)

        response = client.post("/orders", json={"address_id": address["id"]}, headers=USER)

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred"
    }
    assert "exploded" not in response.text
    assert _stock(database, product_id) == 4
    assert len(_cart_lines(database)) == 1
