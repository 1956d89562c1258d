from decimal import Decimal
from typing import Optional

import pytest

from restaurant_orders.core.config import get_settings
from restaurant_orders.services.catalog import (
    BaseCatalogReader,
    CachedCatalogReader,
    ProductInfo,
    get_catalog_reader,
    reset_catalog_reader,
)


class CountingReader(BaseCatalogReader):
    def __init__(self, products: dict[int, ProductInfo]):
        self.products = products
        self.calls = 0

    @property
    def provider_name(self) -> str:
        return "counting"

    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        self.calls += 1
        return self.products.get(product_id)


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def inner():
    return CountingReader({
        1: ProductInfo(product_id=1, name="Margherita", price=Decimal("12.50"), is_active=True, restaurant_id=1),
    })


@pytest.fixture
def ticker():
    return ManualClock()


@pytest.fixture
def cached(inner, ticker):
    return CachedCatalogReader(inner, ttl_seconds=30, clock=ticker)


async def test_hit_within_ttl(cached, inner, ticker):
    first = await cached.get_product(1)
    ticker.now = 29.0
    second = await cached.get_product(1)

    assert first == second
    assert inner.calls == 1


async def test_entry_expires(cached, inner, ticker):
    await cached.get_product(1)
    ticker.now = 30.0
    await cached.get_product(1)

    assert inner.calls == 2


async def test_misses_are_not_cached(cached, inner):
    assert await cached.get_product(2) is None

    inner.products[2] = ProductInfo(
        product_id=2, name="Tiramisu", price=Decimal("7.33"), is_active=True, restaurant_id=1
    )
    assert (await cached.get_product(2)).name == "Tiramisu"


async def test_invalidate(cached, inner):
    await cached.get_product(1)
    cached.invalidate(1)
    await cached.get_product(1)
    cached.invalidate()
    await cached.get_product(1)

    assert inner.calls == 3


def test_factory_honours_ttl_setting(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./factory.db")

    for ttl, expected in (("0", "sql"), ("15", "cached:sql")):
        monkeypatch.setenv("CATALOG_CACHE_TTL_SECONDS", ttl)
        get_settings.cache_clear()
        reset_catalog_reader()
        try:
            assert get_catalog_reader().provider_name == expected
        finally:
            get_settings.cache_clear()
            reset_catalog_reader()
