"""
                        Services Module

Business logic behind the HTTP layer. Each service is built once from
settings and shared; `reset_services()` drops the cached instances.

Services:
    - orders: lifecycle engine and listing façade
    - reviews: review ledger and ratings
    - catalog / directory: product and restaurant lookups
    - report_export: Excel order reports written by Celery workers
"""

import logging
from functools import lru_cache

from restaurant_orders.core.config import get_settings
from restaurant_orders.database import get_session_maker
from restaurant_orders.services.catalog import get_catalog_reader, reset_catalog_reader
from restaurant_orders.services.directory import (
    get_restaurant_directory,
    reset_restaurant_directory,
)
from restaurant_orders.services.orders import OrderEngine, OrderQueryFacade
from restaurant_orders.services.report_export import ReportExporter
from restaurant_orders.services.reviews import ReviewLedger

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_engine() -> OrderEngine:
    settings = get_settings()
    return OrderEngine(
        get_session_maker(),
        get_catalog_reader(),
        get_restaurant_directory(),
        retry_delay=settings.storage_retry_delay_seconds,
    )


@lru_cache()
def get_query_facade() -> OrderQueryFacade:
    settings = get_settings()
    return OrderQueryFacade(
        get_order_engine(),
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )


@lru_cache()
def get_review_ledger() -> ReviewLedger:
    settings = get_settings()
    return ReviewLedger(
        get_session_maker(),
        get_restaurant_directory(),
        retry_delay=settings.storage_retry_delay_seconds,
    )


@lru_cache()
def get_report_exporter() -> ReportExporter:
    settings = get_settings()
    return ReportExporter(settings.data_directory, settings.report_lock_timeout)


def reset_services() -> None:
    """Clear every cached service instance."""
    for factory in (get_order_engine, get_query_facade, get_review_ledger, get_report_exporter):
        factory.cache_clear()
    reset_catalog_reader()
    reset_restaurant_directory()
    logger.debug("Service caches cleared")


__all__ = [
    "get_order_engine",
    "get_query_facade",
    "get_review_ledger",
    "get_report_exporter",
    "reset_services",
    "OrderEngine",
    "OrderQueryFacade",
    "ReviewLedger",
    "ReportExporter",
]
