"""
TTL-cached Catalog Reader

Wraps another reader and reuses a product lookup for a bounded window.
Prices are snapshotted into order lines at placement time, so the window
only bounds how stale a newly placed order's price may be; it never
affects existing orders.

Misses (unknown products) are not cached, so a product created a moment
ago becomes orderable immediately.
"""

import logging
import time
from typing import Callable, Optional

from restaurant_orders.services.catalog.base import BaseCatalogReader, ProductInfo

logger = logging.getLogger(__name__)


class CachedCatalogReader(BaseCatalogReader):
    """
    Catalog reader decorator with per-product expiry.

    Attributes:
        ttl_seconds: How long a lookup stays valid
    """

    def __init__(
        self,
        inner: BaseCatalogReader,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._inner = inner
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, tuple[float, ProductInfo]] = {}

        logger.info(
            f"CachedCatalogReader initialized "
            f"(ttl={ttl_seconds}s, inner={inner.provider_name})"
        )

    @property
    def provider_name(self) -> str:
        return f"cached:{self._inner.provider_name}"

    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        now = self._clock()
        entry = self._entries.get(product_id)
        if entry is not None and entry[0] > now:
            return entry[1]

        product = await self._inner.get_product(product_id)
        if product is None:
            self._entries.pop(product_id, None)
            return None

        self._entries[product_id] = (now + self.ttl_seconds, product)
        return product

    def invalidate(self, product_id: Optional[int] = None) -> None:
        """Drop one cached product, or all of them."""
        if product_id is None:
            self._entries.clear()
        else:
            self._entries.pop(product_id, None)
