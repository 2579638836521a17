from typing import Any, Dict, Iterable, Optional
import logging

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from ..common import database
from .model import Product

_logger = logging.getLogger(__name__)


def _product_to_dict(prod: Product) -> Dict[str, Any]:
    return {"id": prod.id, "name": prod.name, "price": prod.price, "image_url": prod.image_url}


async def find_first_product() -> Optional[Dict[str, Any]]:
    """Return any existing product (lowest id), or None for an empty catalog."""
    try:
        async with database.AsyncSessionLocal() as session:
            res = await session.execute(sa.select(Product).order_by(Product.id).limit(1))
            prod = res.scalars().first()
    except SQLAlchemyError as e:
        raise database.storage_error("find first product", e) from e
    if prod is None:
        _logger.info("Catalog is empty, no fallback product")
        return None
    return _product_to_dict(prod)


async def get_products_by_ids(product_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    try:
        async with database.AsyncSessionLocal() as session:
            res = await session.execute(sa.select(Product).where(Product.id.in_(ids)))
            found = {prod.id: _product_to_dict(prod) for prod in res.scalars().all()}
    except SQLAlchemyError as e:
        raise database.storage_error("get products", e) from e
    _logger.debug("DB get products | requested=%s found=%s", len(ids), len(found))
    return found


async def count_products() -> int:
    try:
        async with database.AsyncSessionLocal() as session:
            res = await session.execute(sa.select(sa.func.count(Product.id)))
            return int(res.scalar() or 0)
    except SQLAlchemyError as e:
        raise database.storage_error("count products", e) from e
