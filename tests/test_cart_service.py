import pytest

from conftest import OTHER_USER_ID, USER_ID
from exceptions import InsufficientStockOrInactive, NotFound
from models import CartItem


def test_add_creates_line(db, cart_service, make_product):
    product = make_product(name="Desk Lamp", stock=5)

    result = cart_service.add_to_cart(db, USER_ID, product.id, 2)

    assert result["product_name"] == "Desk Lamp"
    assert result["quantity"] == 2
    assert db.query(CartItem).filter(CartItem.user_id == USER_ID).count() == 1


def test_add_same_product_merges_quantity(db, cart_service, make_product):
    product = make_product(stock=10)

    first = cart_service.add_to_cart(db, USER_ID, product.id, 2)
    second = cart_service.add_to_cart(db, USER_ID, product.id, 3)

    assert first["cart_item_id"] == second["cart_item_id"]
    assert second["quantity"] == 5
    assert db.query(CartItem).count() == 1


def test_add_caps_quantity(db, cart_service, make_product):
    product = make_product(stock=500)

    cart_service.add_to_cart(db, USER_ID, product.id, 60)
    result = cart_service.add_to_cart(db, USER_ID, product.id, 60)

    assert result["quantity"] == 99


def test_add_inactive_product_is_not_found(db, cart_service, make_product):
    product = make_product(is_active=False)

    with pytest.raises(NotFound):
        cart_service.add_to_cart(db, USER_ID, product.id, 1)


def test_add_more_than_stock(db, cart_service, make_product):
    product = make_product(name="Rare Vinyl", stock=1)

    with pytest.raises(InsufficientStockOrInactive) as exc_info:
        cart_service.add_to_cart(db, USER_ID, product.id, 2)

    assert exc_info.value.product_name == "Rare Vinyl"


def test_read_cart_joins_products(db, cart_service, make_product, put_in_cart):
    a = make_product(name="A", price="10.00")
    b = make_product(name="B", price="5.50")
    put_in_cart(a, 2)
    put_in_cart(b, 1)
    put_in_cart(a, 4, user_id=OTHER_USER_ID)

    lines = cart_service.read_cart(db, USER_ID)

    assert [(line.product.name, line.quantity) for line in lines] == [("A", 2), ("B", 1)]


def test_read_empty_cart(db, cart_service):
    assert cart_service.read_cart(db, USER_ID) == []


def test_get_cart_totals_as_strings(db, cart_service, make_product, put_in_cart):
    put_in_cart(make_product(name="A", price="10.00"), 2)
    put_in_cart(make_product(name="B", price="5.50"), 1)

    cart = cart_service.get_cart(db, USER_ID)

    assert cart["total"] == "25.50"
    assert [item["subtotal"] for item in cart["items"]] == ["20.00", "5.50"]
    assert cart["items"][1]["price"] == "5.50"


def test_update_quantity(db, cart_service, make_product, put_in_cart):
    item = put_in_cart(make_product(stock=8), 1)

    result = cart_service.update_quantity(db, USER_ID, item.id, 8)

    assert result["quantity"] == 8


def test_update_quantity_above_stock(db, cart_service, make_product, put_in_cart):
    item = put_in_cart(make_product(stock=3), 1)

    with pytest.raises(InsufficientStockOrInactive):
        cart_service.update_quantity(db, USER_ID, item.id, 4)


def test_cannot_touch_another_users_line(db, cart_service, make_product, put_in_cart):
    item = put_in_cart(make_product(), 1, user_id=OTHER_USER_ID)

    with pytest.raises(NotFound):
        cart_service.update_quantity(db, USER_ID, item.id, 2)
    with pytest.raises(NotFound):
        cart_service.remove_item(db, USER_ID, item.id)


def test_remove_item(db, cart_service, make_product, put_in_cart):
    item = put_in_cart(make_product(), 1)

    cart_service.remove_item(db, USER_ID, item.id)

    assert db.query(CartItem).count() == 0


def test_clear_cart_only_touches_one_user(db, cart_service, make_product, put_in_cart):
    product = make_product()
    put_in_cart(product, 1)
    put_in_cart(product, 1, user_id=OTHER_USER_ID)

    deleted = cart_service.clear_cart(db, USER_ID)
    db.commit()

    assert deleted == 1
    assert [c.user_id for c in db.query(CartItem).all()] == [OTHER_USER_ID]


def test_cart_count_is_cached(db, cart_service, redis_client, make_product, put_in_cart):
    put_in_cart(make_product(), 1)

    assert cart_service.get_cart_count(db, USER_ID) == 1
    assert redis_client.get(f"cart:{USER_ID}") == "1"
    assert redis_client.ttl(f"cart:{USER_ID}") > 0


def test_adding_invalidates_cached_count(db, cart_service, redis_client, make_product):
    first = make_product(name="First")
    second = make_product(name="Second")
    cart_service.add_to_cart(db, USER_ID, first.id, 1)
    assert cart_service.get_cart_count(db, USER_ID) == 1

    cart_service.add_to_cart(db, USER_ID, second.id, 1)

    assert redis_client.get(f"cart:{USER_ID}") is None
    assert cart_service.get_cart_count(db, USER_ID) == 2
