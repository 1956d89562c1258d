"""SQL Restaurant Directory backed by the `restaurants` table."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_orders.models import Restaurant
from restaurant_orders.services.directory.base import BaseRestaurantDirectory, RestaurantInfo
from restaurant_orders.services.storage import run_in_transaction

logger = logging.getLogger(__name__)


class SqlRestaurantDirectory(BaseRestaurantDirectory):

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

    async def get_restaurant(self, restaurant_id: int) -> Optional[RestaurantInfo]:
        async def _load(session: AsyncSession) -> Optional[RestaurantInfo]:
            result = await session.execute(
                select(Restaurant).where(Restaurant.id == restaurant_id)
            )
            restaurant = result.scalar_one_or_none()
            if restaurant is None:
                return None
            return RestaurantInfo(
                restaurant_id=restaurant.id,
                name=restaurant.name,
                owner_user_id=restaurant.owner_user_id,
                is_active=bool(restaurant.is_active),
            )

        return await run_in_transaction(
            self._session_factory,
            _load,
            retry_delay=self._retry_delay,
            operation=f"restaurant lookup #{restaurant_id}",
        )

    async def list_restaurant_ids_by_owner(self, owner_user_id: int) -> list[int]:
        async def _load(session: AsyncSession) -> list[int]:
            result = await session.execute(
                select(Restaurant.id)
                .where(Restaurant.owner_user_id == owner_user_id)
                .order_by(Restaurant.id)
            )
            return list(result.scalars().all())

        ids = await run_in_transaction(
            self._session_factory,
            _load,
            retry_delay=self._retry_delay,
            operation=f"restaurants of owner #{owner_user_id}",
        )
        logger.debug(f"Owner #{owner_user_id} restaurants: {ids}")
        return ids
