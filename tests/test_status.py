import pytest

from storefront.common.config import settings
from storefront.common.errors import ValidationError
from storefront.orders import store
from storefront.orders.intake import CustomerInfo, LineItem
from storefront.orders.model import OrderStatus
from storefront.orders.status import STRICT_TRANSITIONS, TransitionPolicy, change_status, parse_status, project_items


def test_parse_status():
    assert parse_status("COMPLETED") is OrderStatus.COMPLETED
    assert parse_status(OrderStatus.VIEWED) is OrderStatus.VIEWED
    for bad in ("FOO", "completed", None, 3):
        with pytest.raises(ValidationError):
            parse_status(bad)


def test_default_policy_is_permissive():
    policy = TransitionPolicy()
    assert policy.allows(OrderStatus.COMPLETED, OrderStatus.CREATED)
    assert policy.allows(OrderStatus.CANCELED, OrderStatus.VIEWED)


def test_strict_policy():
    policy = TransitionPolicy(STRICT_TRANSITIONS)
    assert policy.allows(OrderStatus.CREATED, OrderStatus.VIEWED)
    assert policy.allows(OrderStatus.VIEWED, OrderStatus.CANCELED)
    assert policy.allows(OrderStatus.COMPLETED, OrderStatus.COMPLETED)
    assert not policy.allows(OrderStatus.COMPLETED, OrderStatus.CREATED)
    assert not policy.allows(OrderStatus.VIEWED, OrderStatus.CREATED)
    with pytest.raises(ValidationError):
        policy.check(OrderStatus.CANCELED, OrderStatus.VIEWED)


def test_project_items_builds_product_summary():
    order = {"id": 1, "items": [{"id": 5, "product_id": 7, "name": "Camera", "image_url": "/cam.jpg"}]}
    [item] = project_items(order)["items"]
    assert item["product"] == {"id": 7, "name": "Camera", "sku": "", "image": "/cam.jpg"}
    assert "product" not in order["items"][0]


async def _order():
    customer = CustomerInfo(customer_name="Alan", email="alan@example.com", phone="1")
    return await store.create_order(customer, 20.0, [LineItem(7, "Camera", 10.0, 2, "/cam.jpg")])


async def test_change_status_returns_projected_order(db):
    created = await _order()
    order = await change_status(created["id"], "COMPLETED")
    assert order["status"] == "COMPLETED"
    assert order["items"][0]["product"]["id"] == 7


async def test_backwards_change_allowed_by_default(db):
    created = await _order()
    await change_status(created["id"], "COMPLETED")
    order = await change_status(created["id"], "CREATED")
    assert order["status"] == "CREATED"


async def test_strict_mode_blocks_backwards_change(db, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_STATUS_TRANSITIONS", True)
    created = await _order()
    await change_status(created["id"], "COMPLETED")
    with pytest.raises(ValidationError):
        await change_status(created["id"], "CREATED")
    assert (await store.get_order(created["id"]))["status"] == "COMPLETED"
