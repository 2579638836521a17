import os
from dataclasses import dataclass


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))

    # Database (local SQLite file by default)
    DB_URL: str = os.getenv("DB_URL", "sqlite+aiosqlite:///./storefront.db")
    SEED_PRODUCTS: bool = _get_bool("SEED_PRODUCTS", True)

    # Cart intake
    PLACEHOLDER_IMAGE: str = os.getenv("PLACEHOLDER_IMAGE", "/placeholder-product.jpg")
    DEFAULT_ITEM_NAME: str = os.getenv("DEFAULT_ITEM_NAME", "Item")
    STRICT_TOTALS: bool = _get_bool("STRICT_TOTALS", False)

    # Orders
    ORDERS_PAGE_LIMIT: int = int(os.getenv("ORDERS_PAGE_LIMIT", "10"))
    ORDERS_MAX_PAGE_SIZE: int = int(os.getenv("ORDERS_MAX_PAGE_SIZE", "100"))
    ORDER_ITEMS_PLACEHOLDER: bool = _get_bool("ORDER_ITEMS_PLACEHOLDER", True)
    STRICT_STATUS_TRANSITIONS: bool = _get_bool("STRICT_STATUS_TRANSITIONS", False)

    # Dashboard
    POPULAR_PRODUCTS_LIMIT: int = int(os.getenv("POPULAR_PRODUCTS_LIMIT", "5"))


settings = Settings()
