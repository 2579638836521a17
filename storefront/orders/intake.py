"""Cart intake: turn loosely shaped client cart records into canonical order lines.

Clients send cart items in several shapes (``id`` vs ``productId`` vs
``product_id``, ``image`` vs ``image_url`` vs a nested ``product`` object...).
Each logical field has its own extractor that walks an ordered list of
candidate keys and returns None when nothing usable is present; defaults are
applied afterwards in :func:`normalize_cart`.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from ..common.config import settings
from ..common.errors import EmptyCartError, PersistenceError, ValidationError
from ..inventory.service import get_products_by_ids
from .resolver import MAX_ID, fetch_fallback_product_id, parse_product_id, resolve_product_id

_logger = logging.getLogger(__name__)

IDENTIFIER_KEYS = ("id", "productId", "product_id")
NAME_KEYS = ("name", "title")
IMAGE_KEYS = ("image", "image_url", "imageUrl")
NESTED_IMAGE_KEYS = ("image", "image_url")


@dataclass
class LineItem:
    product_id: int
    name: str
    price: float
    quantity: int
    image_url: str

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


@dataclass
class CustomerInfo:
    customer_name: str
    email: str
    phone: str
    address: str = ""
    comment: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CustomerInfo":
        """Build from a checkout payload using camelCase or snake_case keys."""
        values = {
            "customer_name": _first_text(payload, ("customerName", "customer_name")),
            "email": _first_text(payload, ("email",)),
            "phone": _first_text(payload, ("phone",)),
        }
        missing = [name for name, value in values.items() if value is None]
        if missing:
            raise ValidationError(f"Missing required customer fields: {', '.join(missing)}")
        return cls(
            address=_first_text(payload, ("address",)) or "",
            comment=_first_text(payload, ("comment",)) or "",
            **values,
        )


@dataclass
class CartIntake:
    """Result of one intake call: the normalized lines plus what was dropped."""

    items: List[LineItem]
    dropped: int = 0
    fallback_product_id: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _first(record: Mapping[str, Any], keys: Sequence[str]) -> Optional[Any]:
    for key in keys:
        value = record.get(key)
        if _present(value):
            return value
    return None


def _first_text(record: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    value = _first(record, keys)
    return str(value).strip() if value is not None else None


def _nested_product(record: Mapping[str, Any]) -> Mapping[str, Any]:
    product = record.get("product")
    return product if isinstance(product, Mapping) else {}


def to_number(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def extract_identifier(record: Mapping[str, Any]) -> Optional[Any]:
    return _first(record, IDENTIFIER_KEYS)


def extract_name(record: Mapping[str, Any]) -> Optional[str]:
    return _first_text(record, NAME_KEYS) or _first_text(_nested_product(record), ("name",))


def extract_price(record: Mapping[str, Any]) -> Optional[float]:
    return to_number(record.get("price"))


def extract_quantity(record: Mapping[str, Any]) -> Optional[int]:
    value = to_number(record.get("quantity"))
    if value is None or not 1 <= int(value) <= MAX_ID:
        return None
    return int(value)


def extract_image(record: Mapping[str, Any]) -> Optional[str]:
    return _first_text(record, IMAGE_KEYS) or _first_text(_nested_product(record), NESTED_IMAGE_KEYS)


def _check_cart(raw_items: Any) -> None:
    if raw_items is None:
        raise EmptyCartError()
    if not isinstance(raw_items, (list, tuple)):
        raise ValidationError("cartItems must be a list")
    if not raw_items:
        raise EmptyCartError()


def normalize_cart(
    raw_items: Optional[Sequence[Any]],
    fallback_product_id: Optional[int] = None,
    catalog: Optional[Mapping[int, Mapping[str, Any]]] = None,
) -> List[LineItem]:
    """Normalize raw cart records into :class:`LineItem` objects.

    ``catalog`` maps product ids to known products and only fills fields the
    client left out. Records that are not mappings are dropped. Raises
    :class:`ValidationError` when the cart is not a list and
    :class:`EmptyCartError` when nothing is left.
    """
    _check_cart(raw_items)
    catalog = catalog or {}

    items: List[LineItem] = []
    for index, record in enumerate(raw_items):
        if not isinstance(record, Mapping):
            _logger.warning("Dropping cart item that is not a record | index=%s item=%r", index, record)
            continue

        raw_id = extract_identifier(record)
        if raw_id is None:
            _logger.warning("Cart item has no identifier | index=%s item=%r", index, dict(record))
        product_id = resolve_product_id(raw_id, index, fallback_product_id)
        known = catalog.get(product_id, {}) if parse_product_id(raw_id) is not None else {}

        price = extract_price(record)
        if price is None:
            price = to_number(known.get("price")) or 0.0
        if price < 0:
            _logger.warning("Negative price clamped to 0 | index=%s price=%s", index, price)
            price = 0.0

        items.append(
            LineItem(
                product_id=product_id,
                name=extract_name(record) or known.get("name") or settings.DEFAULT_ITEM_NAME,
                price=price,
                quantity=extract_quantity(record) or 1,
                image_url=extract_image(record) or known.get("image_url") or settings.PLACEHOLDER_IMAGE,
            )
        )
        _logger.debug("Cart item [%s] -> product_id=%s", raw_id, product_id)

    if not items:
        _logger.error("No cart items left after normalization | received=%s", len(raw_items))
        raise EmptyCartError("Could not prepare any items for the order")
    return items


async def prepare_cart(raw_items: Optional[Sequence[Any]]) -> CartIntake:
    """Normalize a cart, doing the catalog lookups once for the whole batch."""
    _check_cart(raw_items)

    fallback_product_id = await fetch_fallback_product_id()
    referenced = [
        pid
        for pid in (parse_product_id(extract_identifier(r)) for r in raw_items if isinstance(r, Mapping))
        if pid is not None
    ]
    try:
        catalog = await get_products_by_ids(referenced)
    except PersistenceError as e:
        _logger.warning("Catalog enrichment skipped | err=%s", e)
        catalog = {}

    items = normalize_cart(raw_items, fallback_product_id, catalog)
    intake = CartIntake(items=items, dropped=len(raw_items) - len(items), fallback_product_id=fallback_product_id)
    if intake.dropped:
        intake.warnings.append(f"{intake.dropped} cart item(s) could not be read and were skipped")
    return intake


def parse_total(raw: Any) -> float:
    value = to_number(raw)
    if value is None or value < 0:
        raise ValidationError(f"Invalid total amount: {raw!r}")
    return value


def check_total(items: Sequence[LineItem], total_amount: float, strict: Optional[bool] = None) -> bool:
    """Compare the client total with the sum of the lines.

    The client total is trusted by default (it may include discounts the
    lines do not show); a mismatch is only rejected in strict mode.
    """
    strict = settings.STRICT_TOTALS if strict is None else strict
    computed = round(sum(item.subtotal for item in items), 2)
    if math.isclose(computed, total_amount, abs_tol=0.005):
        return True
    _logger.warning("Order total differs from line sum | total=%s computed=%s", total_amount, computed)
    if strict:
        raise ValidationError(f"Total amount {total_amount} does not match items sum {computed}")
    return False
