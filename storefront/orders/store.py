"""Durable persistence of orders and their line items.

Functions return plain dicts. Every SQLAlchemy failure is translated into
:class:`PersistenceError` (or :class:`SchemaMissingError` when a table does
not exist yet); writes happen inside one transaction so a failure never
leaves a partial order behind.
"""
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from ..common import database
from ..common.config import settings
from ..common.errors import NotFoundError
from .intake import CustomerInfo, LineItem
from .model import Order, OrderItem, OrderStatus, utcnow

_logger = logging.getLogger(__name__)

PLACEHOLDER_ITEM_ID = 0

TransitionCheck = Callable[[OrderStatus, OrderStatus], None]


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "name": item.name,
        "title": item.name,
        "price": item.price,
        "quantity": item.quantity,
        "image_url": item.image_url or settings.PLACEHOLDER_IMAGE,
    }


def order_to_dict(order: Order, items: Optional[Sequence[OrderItem]] = None) -> Dict[str, Any]:
    status = OrderStatus(order.status)
    data = {
        "id": order.id,
        "customer_name": order.customer_name,
        "email": order.email,
        "phone": order.phone,
        "address": order.address or "",
        "comment": order.comment or "",
        "total_amount": order.total_amount,
        "status": status.value,
        "status_label": status.label,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }
    if items is not None:
        data["items"] = [item_to_dict(it) for it in items]
    return data


def placeholder_item(order: Order) -> Dict[str, Any]:
    return {
        "id": PLACEHOLDER_ITEM_ID,
        "order_id": order.id,
        "product_id": 1,
        "name": settings.DEFAULT_ITEM_NAME,
        "title": settings.DEFAULT_ITEM_NAME,
        "price": order.total_amount or 0.0,
        "quantity": 1,
        "image_url": settings.PLACEHOLDER_IMAGE,
        "placeholder": True,
    }


def _order_id_of(order_id: Any) -> int:
    # Callers validate; this only guards the SQL layer
    return int(order_id)


async def _fetch_items(session, order_id: int) -> List[OrderItem]:
    res = await session.execute(
        sa.select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    )
    return list(res.scalars().all())


async def create_order(customer: CustomerInfo, total_amount: float, items: Sequence[LineItem]) -> Dict[str, Any]:
    try:
        async with database.AsyncSessionLocal() as session:
            async with session.begin():
                now = utcnow()
                order = Order(
                    customer_name=customer.customer_name,
                    email=customer.email,
                    phone=customer.phone,
                    address=customer.address or "",
                    comment=customer.comment or "",
                    total_amount=total_amount,
                    status=OrderStatus.CREATED,
                    created_at=now,
                    updated_at=now,
                )
                order.items = [
                    OrderItem(
                        product_id=it.product_id,
                        name=it.name,
                        price=it.price,
                        quantity=it.quantity,
                        image_url=it.image_url or settings.PLACEHOLDER_IMAGE,
                        created_at=now,
                    )
                    for it in items
                ]
                session.add(order)
                await session.flush()  # assign PKs for order and items
                result = order_to_dict(order, order.items)
    except SQLAlchemyError as e:
        raise database.storage_error("create order", e) from e
    _logger.info("Order created | order_id=%s items=%s total=%s", result["id"], len(result["items"]), total_amount)
    return result


async def get_order(order_id: int) -> Dict[str, Any]:
    order_id = _order_id_of(order_id)
    try:
        async with database.AsyncSessionLocal() as session:
            res = await session.execute(
                sa.select(Order).options(joinedload(Order.items)).where(Order.id == order_id)
            )
            order = res.unique().scalars().first()
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            items = list(order.items)
            if not items:
                _logger.warning("Order has no joined items, querying directly | order_id=%s", order_id)
                items = await _fetch_items(session, order_id)
                _logger.info("Direct item query | order_id=%s items=%s", order_id, len(items))
    except SQLAlchemyError as e:
        raise database.storage_error("get order", e) from e

    result = order_to_dict(order, items)
    result["items_missing"] = not items
    if not items:
        _logger.warning("Order has no items after direct query | order_id=%s", order_id)
        if settings.ORDER_ITEMS_PLACEHOLDER:
            result["items"] = [placeholder_item(order)]
    return result


async def list_orders(
    status: Optional[OrderStatus] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    items_count = sa.func.count(OrderItem.id).label("items_count")
    total_items = sa.func.coalesce(sa.func.sum(OrderItem.quantity), 0).label("total_items")
    stmt = (
        sa.select(Order, items_count, total_items)
        .outerjoin(OrderItem, OrderItem.order_id == Order.id)
        .group_by(Order.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    count_stmt = sa.select(sa.func.count(Order.id))
    if status is not None:
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)

    try:
        async with database.AsyncSessionLocal() as session:
            rows = (await session.execute(stmt)).all()
            total = int((await session.execute(count_stmt)).scalar() or 0)
    except SQLAlchemyError as e:
        raise database.storage_error("list orders", e) from e

    orders = []
    for order, count, quantity in rows:
        data = order_to_dict(order)
        data["items_count"] = int(count or 0)
        data["total_items"] = int(quantity or 0)
        orders.append(data)
    return orders, total


async def set_status(order_id: int, status: OrderStatus, check: Optional[TransitionCheck] = None) -> Dict[str, Any]:
    order_id = _order_id_of(order_id)
    try:
        async with database.AsyncSessionLocal() as session:
            async with session.begin():
                order = await session.get(Order, order_id)
                if order is None:
                    raise NotFoundError(f"Order {order_id} not found")
                previous = OrderStatus(order.status)
                if check is not None:
                    check(previous, status)
                now = utcnow()
                if order.updated_at is not None and now <= order.updated_at:
                    now = order.updated_at + timedelta(microseconds=1)
                order.status = status
                order.updated_at = now
            items = await _fetch_items(session, order_id)
    except SQLAlchemyError as e:
        raise database.storage_error("set order status", e) from e
    _logger.info("Order status updated | order_id=%s %s -> %s", order_id, previous.value, status.value)
    return order_to_dict(order, items)


# Aggregate queries used by the dashboard


async def count_orders(status: Optional[OrderStatus] = None) -> int:
    stmt = sa.select(sa.func.count(Order.id))
    if status is not None:
        stmt = stmt.where(Order.status == status)
    try:
        async with database.AsyncSessionLocal() as session:
            return int((await session.execute(stmt)).scalar() or 0)
    except SQLAlchemyError as e:
        raise database.storage_error("count orders", e) from e


async def sum_total_amount(status: Optional[OrderStatus] = None) -> float:
    stmt = sa.select(sa.func.coalesce(sa.func.sum(Order.total_amount), 0.0))
    if status is not None:
        stmt = stmt.where(Order.status == status)
    try:
        async with database.AsyncSessionLocal() as session:
            return float((await session.execute(stmt)).scalar() or 0.0)
    except SQLAlchemyError as e:
        raise database.storage_error("sum order totals", e) from e


async def count_by_status() -> Dict[str, int]:
    stmt = sa.select(Order.status, sa.func.count(Order.id)).group_by(Order.status)
    try:
        async with database.AsyncSessionLocal() as session:
            rows = (await session.execute(stmt)).all()
    except SQLAlchemyError as e:
        raise database.storage_error("count orders by status", e) from e
    return {OrderStatus(status).value: int(count) for status, count in rows}


async def popular_products(limit: int = 5) -> List[Dict[str, Any]]:
    total_quantity = sa.func.sum(OrderItem.quantity).label("total_quantity")
    stmt = (
        sa.select(
            OrderItem.product_id,
            sa.func.max(OrderItem.name).label("name"),
            sa.func.count(OrderItem.id).label("order_count"),
            total_quantity,
        )
        .join(Order, Order.id == OrderItem.order_id)
        .group_by(OrderItem.product_id)
        .order_by(total_quantity.desc(), OrderItem.product_id)
        .limit(limit)
    )
    try:
        async with database.AsyncSessionLocal() as session:
            rows = (await session.execute(stmt)).all()
    except SQLAlchemyError as e:
        raise database.storage_error("popular products", e) from e
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "order_count": int(row.order_count),
            "total_quantity": int(row.total_quantity or 0),
        }
        for row in rows
    ]
