"""
SQL Catalog Reader

Reads products straight from the catalog tables. Each lookup uses its own
short read-only transaction so it never holds locks across an order
placement.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_orders.models import Product
from restaurant_orders.services.catalog.base import BaseCatalogReader, ProductInfo
from restaurant_orders.services.storage import run_in_transaction

logger = logging.getLogger(__name__)


class SqlCatalogReader(BaseCatalogReader):
    """Catalog reader backed by the `products` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_delay: float = 0.0,
    ):
        self._session_factory = session_factory
        self._retry_delay = retry_delay

    @property
    def provider_name(self) -> str:
        return "sql"

    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        async def _load(session: AsyncSession) -> Optional[ProductInfo]:
            result = await session.execute(
                select(Product).where(Product.id == product_id)
            )
            product = result.scalar_one_or_none()
            if product is None:
                return None
            return ProductInfo(
                product_id=product.id,
                name=product.name,
                price=product.price,
                is_active=bool(product.is_active),
                restaurant_id=product.restaurant_id,
            )

        product = await run_in_transaction(
            self._session_factory,
            _load,
            retry_delay=self._retry_delay,
            operation=f"catalog lookup #{product_id}",
        )
        logger.debug(f"Catalog lookup #{product_id}: {product}")
        return product
