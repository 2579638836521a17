import pytest

from storefront.common import database
from storefront.inventory.model import Product


@pytest.fixture
async def bare_db(tmp_path):
    """A database with no tables, like a fresh deployment."""
    engine = database.bind_engine(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(tmp_path):
    engine = database.bind_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await database.create_tables()
    yield engine
    await engine.dispose()


@pytest.fixture
def add_products(db):
    async def _add(*products):
        async with database.AsyncSessionLocal() as session:
            session.add_all([Product(**p) for p in products])
            await session.commit()

    return _add


@pytest.fixture
def checkout():
    """Build a checkout payload; keyword arguments override the defaults."""

    def _make(cart_items, total_amount=None, **overrides):
        if total_amount is None:
            total_amount = sum(float(i.get("price", 0)) * int(i.get("quantity", 1)) for i in cart_items if isinstance(i, dict))
        payload = {
            "customerName": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "+44 20 7946 0000",
            "address": "12 Analytical St",
            "cartItems": cart_items,
            "totalAmount": total_amount,
        }
        payload.update(overrides)
        return payload

    return _make
