"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from restaurant_orders.core.config import (
    get_settings,
    setup_logging,
    get_logger,
    Settings,
    EnvironmentMode,
)
from restaurant_orders.core.exceptions import OrderingError

__all__ = [
    "get_settings",
    "setup_logging",
    "get_logger",
    "Settings",
    "EnvironmentMode",
    "OrderingError",
]
