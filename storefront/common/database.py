import logging
from typing import List

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .db import Base
from .errors import PersistenceError, SchemaMissingError
from ..inventory.model import Product
from ..orders.model import Order, OrderItem  # noqa: F401  (registers tables on Base.metadata)

_logger = logging.getLogger(__name__)


# Async SQLAlchemy engine and session factory
engine: AsyncEngine = create_async_engine(settings.DB_URL, future=True, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def bind_engine(url: str) -> AsyncEngine:
    """Point the shared session factory at another database URL."""
    global engine
    engine = create_async_engine(url, future=True, echo=False)
    AsyncSessionLocal.configure(bind=engine)
    return engine


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(seed: bool = True) -> None:
    await create_tables()
    if not seed:
        return

    # Seed a few products if the catalog is empty
    async with AsyncSessionLocal() as session:
        res = await session.execute(sa.select(sa.func.count(Product.id)))
        count = int(res.scalar() or 0)
        if count == 0:
            products: List[Product] = [
                Product(id=1, name="Widget", price=9.99, image_url="https://picsum.photos/seed/widget/400/300"),
                Product(id=2, name="Gadget", price=14.99, image_url="https://picsum.photos/seed/gadget/400/300"),
                Product(id=3, name="Thingamajig", price=19.99, image_url="https://picsum.photos/seed/thing/400/300"),
            ]
            session.add_all(products)
            await session.commit()
            _logger.info("Seeded catalog | products=%s", len(products))


async def dispose_db() -> None:
    await engine.dispose()


_MISSING_TABLE_MARKERS = ("no such table", "does not exist", "undefinedtable", "doesn't exist")


def storage_error(operation: str, exc: SQLAlchemyError) -> PersistenceError:
    """Translate a SQLAlchemy failure into the order core's error taxonomy."""
    detail = str(getattr(exc, "orig", None) or exc)
    lowered = detail.lower()
    if any(marker in lowered for marker in _MISSING_TABLE_MARKERS):
        _logger.warning("Storage schema missing | op=%s err=%s", operation, detail)
        return SchemaMissingError(f"Storage schema is not initialized ({operation})")
    _logger.error("Storage failure | op=%s err=%s", operation, detail)
    return PersistenceError(f"Storage unavailable ({operation})")
