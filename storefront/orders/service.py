import logging
from typing import Any, Dict, Mapping, Optional

from ..common.config import settings
from ..common.errors import OrderError, PersistenceError, ValidationError
from ..common.metrics import OPERATION_FAILURES, ORDERS_CREATED, STATUS_CHANGES
from . import store
from .intake import CustomerInfo, check_total, parse_total, prepare_cart
from .resolver import parse_product_id
from .status import change_status, parse_status

_logger = logging.getLogger(__name__)


def _failure(operation: str, exc: Exception) -> Dict[str, Any]:
    if isinstance(exc, OrderError):
        code, message = exc.code, exc.message
        if isinstance(exc, PersistenceError):
            _logger.error("%s failed | code=%s err=%s", operation, code, message)
        else:
            _logger.warning("%s rejected | code=%s err=%s", operation, code, message)
    else:
        code, message = "internal_error", "Unexpected error"
        _logger.exception("%s failed unexpectedly", operation)
    OPERATION_FAILURES.labels(operation=operation, code=code).inc()
    return {"success": False, "error": message, "code": code}


def parse_order_id(value: Any) -> int:
    order_id = parse_product_id(value)
    if order_id is None:
        raise ValidationError(f"Invalid order id: {value!r}")
    return order_id


def _parse_page(value: Any, default: int, name: str, minimum: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Invalid {name}: {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Invalid {name}: {value!r}") from None
    if number < minimum:
        raise ValidationError(f"Invalid {name}: {value!r}")
    return number


async def create_order(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Checkout entry point: validate, normalize the cart and persist the order."""
    try:
        if not isinstance(payload, Mapping):
            raise ValidationError("Order payload must be an object")
        customer = CustomerInfo.from_payload(payload)
        cart = payload.get("cartItems", payload.get("cart_items"))
        total_amount = parse_total(payload.get("totalAmount", payload.get("total_amount")))
        intake = await prepare_cart(cart)
        check_total(intake.items, total_amount)
        order = await store.create_order(customer, total_amount, intake.items)
    except Exception as e:
        return _failure("create_order", e)
    ORDERS_CREATED.inc()
    result = {"success": True, "order_id": order["id"]}
    if intake.warnings:
        result["warnings"] = intake.warnings
    return result


async def list_orders(status: Optional[str] = None, limit: Any = None, offset: Any = None) -> Dict[str, Any]:
    try:
        status_filter = parse_status(status) if status else None
        limit = min(_parse_page(limit, settings.ORDERS_PAGE_LIMIT, "limit", 1), settings.ORDERS_MAX_PAGE_SIZE)
        offset = _parse_page(offset, 0, "offset", 0)
        orders, total = await store.list_orders(status_filter, limit, offset)
    except Exception as e:
        return _failure("list_orders", e)
    return {
        "success": True,
        "orders": orders,
        "pagination": {"total": total, "limit": limit, "offset": offset},
    }


async def get_order(order_id: Any) -> Dict[str, Any]:
    try:
        order = await store.get_order(parse_order_id(order_id))
    except Exception as e:
        return _failure("get_order", e)
    return {"success": True, "order": order}


async def set_order_status(order_id: Any, status: Any) -> Dict[str, Any]:
    try:
        order = await change_status(parse_order_id(order_id), status)
    except Exception as e:
        return _failure("set_order_status", e)
    STATUS_CHANGES.labels(status=order["status"]).inc()
    return {"success": True, "order": order}
