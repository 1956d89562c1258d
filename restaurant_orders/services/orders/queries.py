"""
Query / Pagination Façade

Translates listing requests (restaurant-, client- or owner-scoped,
optionally narrowed by status or date range, optionally paged) into the
Order Engine's scoped primitives. Pagination is offset/limit with
zero-based page indices.
"""

import logging
import math
from datetime import datetime
from typing import Optional, Union

from restaurant_orders.core.exceptions import ValidationError
from restaurant_orders.core.security import Principal
from restaurant_orders.models import OrderStatus
from restaurant_orders.schemas import OrderPage, OrderResponse
from restaurant_orders.services.orders.engine import OrderEngine

logger = logging.getLogger(__name__)


class OrderQueryFacade:
    """
    Listing entry point used by the API layer.

    Attributes:
        default_page_size: Used when a page is requested without a size
        max_page_size: Largest accepted page size
    """

    def __init__(
        self,
        engine: OrderEngine,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        self._engine = engine
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def list_restaurant_orders(
        self,
        principal: Principal,
        restaurant_id: int,
        status: Optional[Union[OrderStatus, str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[OrderResponse]:
        """
        Restaurant orders, narrowed by status and/or [start, end).

        Status and range combine: the range query runs in SQL and the
        status filter is applied to its result.
        """
        has_range = self._range_requested(start, end)

        if has_range:
            orders = await self._engine.find_by_created_at_between(
                principal, restaurant_id, start, end
            )
            if status is not None:
                wanted = self._status(status)
                orders = [o for o in orders if o.status == wanted]
            return orders

        if status is not None:
            return await self._engine.find_by_status_and_restaurant_id(
                principal, self._status(status), restaurant_id
            )

        return await self._engine.find_all_orders(principal, restaurant_id)

    async def list_client_orders(
        self,
        principal: Principal,
        client_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[OrderResponse]:
        if self._range_requested(start, end):
            return await self._engine.find_by_client_id_and_created_at_between(
                principal, client_id, start, end
            )
        return await self._engine.find_by_client_id(principal, client_id)

    async def list_owner_orders(
        self,
        principal: Principal,
        owner_id: int,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Union[list[OrderResponse], OrderPage]:
        """Full list, or an OrderPage when a page or page size is given."""
        if page is None and page_size is None:
            return await self._engine.find_all_orders_by_owner_id(principal, owner_id)

        return await self.find_orders_by_owner_id_paged(
            principal,
            owner_id,
            page if page is not None else 0,
            page_size if page_size is not None else self.default_page_size,
        )

    async def find_orders_by_owner_id_paged(
        self,
        principal: Principal,
        owner_id: int,
        page: int,
        page_size: int,
    ) -> OrderPage:
        """
        One zero-based page of an owner's orders.

        Raises:
            ValidationError: Negative page or page_size outside [1, max]
        """
        if page < 0:
            raise ValidationError("Page index must be zero or greater", {"page": page})
        if page_size < 1 or page_size > self.max_page_size:
            raise ValidationError(
                f"Page size must be between 1 and {self.max_page_size}",
                {"page_size": page_size},
            )

        logger.info(f"Retrieving page {page} (size {page_size}) of orders for owner #{owner_id}")

        items, total = await self._engine.find_orders_by_owner_id_window(
            principal, owner_id, offset=page * page_size, limit=page_size
        )
        return OrderPage(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _range_requested(start: Optional[datetime], end: Optional[datetime]) -> bool:
        if (start is None) != (end is None):
            raise ValidationError("start and end must be given together")
        return start is not None

    @staticmethod
    def _status(status: Union[OrderStatus, str]) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown status {status!r}",
                {"allowed": [s.value for s in OrderStatus]},
            )
