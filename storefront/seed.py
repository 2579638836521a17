import asyncio
import logging

import sqlalchemy as sa

from .common.database import AsyncSessionLocal, create_tables
from .inventory.model import Product

_logger = logging.getLogger(__name__)


SAMPLE_PRODUCTS = [
    {"name": "Laptop Pro 14", "price": 1499.00, "image_url": "https://picsum.photos/seed/laptop/400/300"},
    {"name": "Wireless Mouse", "price": 24.99, "image_url": "https://picsum.photos/seed/mouse/400/300"},
    {"name": "Mechanical Keyboard", "price": 89.99, "image_url": "https://picsum.photos/seed/keyboard/400/300"},
    {"name": "USB-C Hub", "price": 39.99, "image_url": None},
    {"name": "Noise-cancelling Headphones", "price": 199.99, "image_url": None},
    {"name": "4K Monitor 27\"", "price": 329.99, "image_url": None},
    {"name": "Portable SSD 1TB", "price": 99.99, "image_url": None},
    {"name": "Webcam 1080p", "price": 49.99, "image_url": None},
]


async def seed_products() -> int:
    await create_tables()
    async with AsyncSessionLocal() as session:
        added = 0
        for p in SAMPLE_PRODUCTS:
            # avoid duplicates by name
            res = await session.execute(sa.select(Product.id).where(Product.name == p["name"]))
            if res.first():
                continue
            session.add(Product(**p))
            added += 1
        if added:
            await session.commit()
    _logger.info("Seed complete | added=%s", added)
    return added


async def amain():
    logging.basicConfig(level=logging.INFO)
    await seed_products()


if __name__ == "__main__":
    asyncio.run(amain())
