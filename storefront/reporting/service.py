"""Dashboard statistics over the order store.

The dashboard must render on a fresh or partially migrated deployment, so
storage failures here are logged and replaced with zero-valued defaults
instead of being surfaced.
"""
import logging
from typing import Any, Dict, Optional

from ..common.config import settings
from ..common.errors import PersistenceError
from ..inventory.service import count_products
from ..orders import store
from ..orders.model import OrderStatus

_logger = logging.getLogger(__name__)


def empty_order_stats() -> Dict[str, Any]:
    return {
        "orders_count": 0,
        "total_sales": 0.0,
        "completed_sales": 0.0,
        "new_orders_count": 0,
        "orders_by_status": {},
        "popular_products": [],
    }


async def order_stats(top_n: Optional[int] = None) -> Dict[str, Any]:
    top_n = settings.POPULAR_PRODUCTS_LIMIT if top_n is None else top_n
    return {
        "orders_count": await store.count_orders(),
        "total_sales": await store.sum_total_amount(),
        "completed_sales": await store.sum_total_amount(OrderStatus.COMPLETED),
        "new_orders_count": await store.count_orders(OrderStatus.CREATED),
        "orders_by_status": await store.count_by_status(),
        "popular_products": await store.popular_products(top_n),
    }


async def dashboard_stats(top_n: Optional[int] = None) -> Dict[str, Any]:
    try:
        products_count = await count_products()
    except PersistenceError as e:
        _logger.warning("Product count unavailable, reporting 0 | err=%s", e)
        products_count = 0

    try:
        stats = await order_stats(top_n)
    except PersistenceError as e:
        _logger.warning("Order statistics unavailable, reporting defaults | err=%s", e)
        stats = empty_order_stats()

    return {"products_count": products_count, **stats}
