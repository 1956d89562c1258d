"""
Restaurant Directory Factory

Usage:
    from restaurant_orders.services.directory import get_restaurant_directory

    directory = get_restaurant_directory()
    restaurant = await directory.get_restaurant(1)
"""

import logging
from functools import lru_cache

from restaurant_orders.core.config import get_settings
from restaurant_orders.database import get_session_maker
from restaurant_orders.services.directory.base import BaseRestaurantDirectory, RestaurantInfo
from restaurant_orders.services.directory.sql import SqlRestaurantDirectory

logger = logging.getLogger(__name__)


@lru_cache()
def get_restaurant_directory() -> BaseRestaurantDirectory:
    """Get the configured restaurant directory instance."""
    settings = get_settings()
    return SqlRestaurantDirectory(
        get_session_maker(),
        retry_delay=settings.storage_retry_delay_seconds,
    )


def reset_restaurant_directory() -> None:
    """Clear the cached directory instance."""
    get_restaurant_directory.cache_clear()
    logger.debug("Restaurant directory cache cleared")


__all__ = [
    "get_restaurant_directory",
    "reset_restaurant_directory",
    "BaseRestaurantDirectory",
    "RestaurantInfo",
    "SqlRestaurantDirectory",
]
