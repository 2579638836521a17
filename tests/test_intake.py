import pytest

from storefront.common.config import settings
from storefront.common.errors import EmptyCartError, ValidationError
from storefront.orders.intake import (
    CustomerInfo,
    LineItem,
    check_total,
    extract_image,
    extract_name,
    normalize_cart,
    parse_total,
    prepare_cart,
)


def test_camera_item_is_kept_as_sent():
    [item] = normalize_cart([{"id": "7", "name": "Camera", "price": 100, "quantity": 2}])
    assert item.product_id == 7
    assert item.name == "Camera"
    assert item.price == 100
    assert item.quantity == 2


def test_empty_record_without_fallback_uses_position():
    items = normalize_cart([{"id": "3"}, {}], fallback_product_id=None)
    assert [i.product_id for i in items] == [3, 2]


def test_empty_record_uses_fallback_product():
    [item] = normalize_cart([{}], fallback_product_id=11)
    assert item.product_id == 11
    assert item.name == settings.DEFAULT_ITEM_NAME
    assert item.price == 0
    assert item.quantity == 1
    assert item.image_url == settings.PLACEHOLDER_IMAGE


@pytest.mark.parametrize("record", [
    {"productId": 5},
    {"product_id": "5"},
    {"id": "", "productId": "5"},
])
def test_identifier_key_chain(record):
    [item] = normalize_cart([record])
    assert item.product_id == 5


def test_name_chain():
    assert extract_name({"name": "A", "title": "B"}) == "A"
    assert extract_name({"title": "B"}) == "B"
    assert extract_name({"name": "  ", "product": {"name": "C"}}) == "C"
    assert extract_name({"product": "not a record"}) is None


def test_image_chain():
    assert extract_image({"image": "/a.jpg", "image_url": "/b.jpg"}) == "/a.jpg"
    assert extract_image({"image_url": "/b.jpg"}) == "/b.jpg"
    assert extract_image({"imageUrl": "/c.jpg"}) == "/c.jpg"
    assert extract_image({"product": {"image": "/d.jpg"}}) == "/d.jpg"
    assert extract_image({"product": {"image_url": "/e.jpg"}}) == "/e.jpg"
    assert extract_image({}) is None


@pytest.mark.parametrize("price, expected", [("12.5", 12.5), ("free", 0), (None, 0), (-4, 0), (float("nan"), 0)])
def test_price_coercion(price, expected):
    [item] = normalize_cart([{"id": 1, "price": price}])
    assert item.price == expected


@pytest.mark.parametrize("quantity, expected", [("3", 3), (0, 1), (-2, 1), ("lots", 1), (2.7, 2), (None, 1)])
def test_quantity_coercion(quantity, expected):
    [item] = normalize_cart([{"id": 1, "quantity": quantity}])
    assert item.quantity == expected


def test_every_line_satisfies_output_guarantees():
    raw = [
        {"id": "9", "title": "Bag", "price": "19.99", "quantity": "2", "imageUrl": "/bag.png"},
        {"product": {"name": "Strap", "image": "/strap.png"}, "price": 5},
        {"productId": "not-a-number", "quantity": 0},
        {},
    ]
    items = normalize_cart(raw, fallback_product_id=None)
    assert len(items) == len(raw)
    for item in items:
        assert isinstance(item.product_id, int) and item.product_id >= 1
        assert item.name
        assert item.price >= 0
        assert item.quantity >= 1
        assert item.image_url


def test_unreadable_records_are_dropped():
    items = normalize_cart([None, "junk", {"id": 4}])
    assert [i.product_id for i in items] == [4]


@pytest.mark.parametrize("raw", [[], None, [None, 17, "x"]])
def test_empty_cart_rejected(raw):
    with pytest.raises(EmptyCartError):
        normalize_cart(raw)


def test_catalog_fills_only_missing_fields():
    catalog = {8: {"id": 8, "name": "Catalog name", "price": 70.0, "image_url": "/catalog.jpg"}}
    [sent, bare] = normalize_cart([{"id": 8, "name": "Cart name", "price": 65}, {"id": "8"}], catalog=catalog)
    assert (sent.name, sent.price, sent.image_url) == ("Cart name", 65, "/catalog.jpg")
    assert (bare.name, bare.price) == ("Catalog name", 70.0)


async def test_prepare_cart_looks_up_fallback_once(db, add_products):
    await add_products({"id": 3, "name": "Tripod", "price": 30.0, "image_url": "/tripod.jpg"})
    intake = await prepare_cart([{"id": "sku-1", "name": "Mystery"}, {"id": 3}, 42])
    assert intake.fallback_product_id == 3
    assert [i.product_id for i in intake.items] == [3, 3]
    assert intake.items[1].name == "Tripod"
    assert intake.dropped == 1
    assert intake.warnings


async def test_prepare_cart_survives_missing_catalog(bare_db):
    intake = await prepare_cart([{"name": "A"}, {"name": "B"}])
    assert [i.product_id for i in intake.items] == [1, 2]


def test_customer_info_accepts_both_key_styles():
    camel = CustomerInfo.from_payload({"customerName": " Ada ", "email": "a@x.io", "phone": "1"})
    snake = CustomerInfo.from_payload({"customer_name": "Ada", "email": "a@x.io", "phone": "1", "comment": "ring"})
    assert camel.customer_name == snake.customer_name == "Ada"
    assert camel.address == "" and snake.comment == "ring"


def test_customer_info_requires_contact_fields():
    with pytest.raises(ValidationError) as exc:
        CustomerInfo.from_payload({"customerName": "Ada", "email": "  "})
    assert "email" in exc.value.message and "phone" in exc.value.message


def test_parse_total():
    assert parse_total("99.5") == 99.5
    for bad in (None, "abc", -1):
        with pytest.raises(ValidationError):
            parse_total(bad)


def test_check_total_trusts_client_by_default():
    items = [LineItem(1, "A", 10.0, 2, "/a.jpg")]
    assert check_total(items, 20.0) is True
    assert check_total(items, 15.0) is False


def test_check_total_strict_mode_rejects_mismatch(monkeypatch):
    monkeypatch.setattr(settings, "STRICT_TOTALS", True)
    with pytest.raises(ValidationError):
        check_total([LineItem(1, "A", 10.0, 2, "/a.jpg")], 15.0)


def test_huge_numbers_are_not_numbers():
    [item] = normalize_cart([{"id": 10 ** 400, "price": 10 ** 400, "quantity": 10 ** 300}], fallback_product_id=6)
    assert item.product_id == 6
    assert item.price == 0
    assert item.quantity == 1


@pytest.mark.parametrize("raw", [5, "abc", {"id": 1}, 2.5])
def test_cart_must_be_a_list(raw):
    with pytest.raises(ValidationError) as exc:
        normalize_cart(raw)
    assert not isinstance(exc.value, EmptyCartError)
    assert exc.value.message == "cartItems must be a list"


async def test_prepare_cart_rejects_non_list_before_lookups(bare_db):
    with pytest.raises(ValidationError):
        await prepare_cart(5)
