"""
Catalog Reader Factory

Provides a single entry point for obtaining the catalog reader.
Wraps the SQL reader in a TTL cache when CATALOG_CACHE_TTL_SECONDS > 0.

Usage:
    from restaurant_orders.services.catalog import get_catalog_reader

    reader = get_catalog_reader()
    product = await reader.get_product(12)
"""

import logging
from functools import lru_cache

from restaurant_orders.core.config import get_settings
from restaurant_orders.database import get_session_maker
from restaurant_orders.services.catalog.base import BaseCatalogReader, ProductInfo
from restaurant_orders.services.catalog.cached import CachedCatalogReader
from restaurant_orders.services.catalog.sql import SqlCatalogReader

logger = logging.getLogger(__name__)


@lru_cache()
def get_catalog_reader() -> BaseCatalogReader:
    """
    Get the configured catalog reader instance.

    Returns:
        BaseCatalogReader: SQL reader, cached when a TTL is configured
    """
    settings = get_settings()
    reader: BaseCatalogReader = SqlCatalogReader(
        get_session_maker(),
        retry_delay=settings.storage_retry_delay_seconds,
    )

    if settings.catalog_cache_enabled:
        logger.info(f"Catalog Reader: caching lookups for {settings.catalog_cache_ttl_seconds}s")
        reader = CachedCatalogReader(reader, settings.catalog_cache_ttl_seconds)
    else:
        logger.info("Catalog Reader: direct SQL lookups (cache disabled)")

    return reader


def reset_catalog_reader() -> None:
    """
    Clear the cached catalog reader instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_catalog_reader.cache_clear()
    logger.debug("Catalog reader cache cleared")


__all__ = [
    "get_catalog_reader",
    "reset_catalog_reader",
    "BaseCatalogReader",
    "ProductInfo",
    "SqlCatalogReader",
    "CachedCatalogReader",
]
