"""Product reference resolution for cart line items.

Every persisted line must carry a numeric product id. The policy, in order:

1. the client-supplied identifier, when it parses as a positive integer;
2. the id of any existing product, looked up once per intake batch;
3. the item's 1-based position in the cart.

This trades referential precision for intake robustness: a best-effort
order is preferred over a rejected one.
"""
import logging
import math
from typing import Any, Optional

from ..common.errors import PersistenceError
from ..inventory.service import find_first_product

_logger = logging.getLogger(__name__)


# Largest id a signed 64-bit INTEGER column can hold
MAX_ID = 2 ** 63 - 1


def _integral(value: float) -> Optional[int]:
    if not math.isfinite(value) or not value.is_integer():
        return None
    return int(value)


def parse_product_id(raw: Any) -> Optional[int]:
    """Return ``raw`` as a positive int, or None when it is not one.

    Integral floats and numeric strings (``3``, ``3.0``, ``"3"``, ``"3.0"``)
    all count; ids outside ``1..MAX_ID`` do not.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        value = _integral(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        try:
            value = int(text, 10)
        except ValueError:
            try:
                value = _integral(float(text))
            except ValueError:
                return None
    else:
        return None
    if value is None or not 1 <= value <= MAX_ID:
        return None
    return value


def resolve_product_id(raw_identifier: Any, index: int, fallback_product_id: Optional[int]) -> int:
    product_id = parse_product_id(raw_identifier)
    if product_id is not None:
        return product_id
    if fallback_product_id is not None:
        return fallback_product_id
    return index + 1


async def fetch_fallback_product_id() -> Optional[int]:
    """Look up the id of any existing product; None if there is none or the catalog is down."""
    try:
        product = await find_first_product()
    except PersistenceError as e:
        _logger.warning("Fallback product lookup failed, using positional ids | err=%s", e)
        return None
    if product is None:
        return None
    _logger.info("Fallback product found | product_id=%s", product["id"])
    return int(product["id"])
