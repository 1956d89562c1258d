"""
Order Engine

Owns the Order aggregate: placement against the catalog, the status
state machine, deletion rules and every tenant-scoped read.

Guarantees:
    - Prices come from the Catalog Reader, never from the request
    - total == round2(sum(line.subtotal)), computed in Decimal
    - Placement is all-or-nothing: every line is validated before the
      single transaction that writes the order and its lines
    - Mutations are optimistic read-modify-write; a lost race surfaces
      as Conflict, never as a silently overwritten status
    - Scoped reads filter by tenant in SQL and check the principal
      against the Restaurant Directory first
    - Single-order operations read the restaurant owner in the same
      query as the order, so each holds one pooled connection at a time
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_orders.core.clock import to_utc, utcnow
from restaurant_orders.core.exceptions import (
    Conflict,
    Forbidden,
    OrderNotDeletable,
    OrderNotFound,
    ProductInactive,
    ProductNotFound,
    ProductRestaurantMismatch,
    RestaurantInactive,
    RestaurantNotFound,
    ValidationError,
)
from restaurant_orders.core.security import Principal
from restaurant_orders.models import MAX_LINE_QUANTITY, Order, OrderLine, OrderStatus, Restaurant
from restaurant_orders.schemas import OrderCreate, OrderResponse, OrderUpdate
from restaurant_orders.services.catalog.base import BaseCatalogReader
from restaurant_orders.services.directory.base import BaseRestaurantDirectory, RestaurantInfo
from restaurant_orders.services.orders.pricing import MAX_AMOUNT, line_subtotal, order_total, to_money
from restaurant_orders.services.orders.state_machine import (
    INITIAL_STATUS,
    ensure_transition,
    is_deletable,
)
from restaurant_orders.services.storage import run_in_transaction

logger = logging.getLogger(__name__)


class OrderEngine:
    """
    Order lifecycle and pricing engine.

    Args:
        session_factory: Produces one AsyncSession per operation
        catalog: Authoritative product reader
        directory: Restaurant existence / ownership reader
        clock: Returns the current UTC time (injectable for tests)
        retry_delay: Pause before the single transient-error retry

    Example:
        >>> engine = OrderEngine(session_maker, catalog, directory)
        >>> order = await engine.add_order(principal, OrderCreate(
        ...     restaurant_id=1, client_id=42,
        ...     lines=[OrderLineCreate(product_id=7, quantity=2)],
        ... ))
        >>> order.status
        <OrderStatus.PENDING: 'PENDING'>
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: BaseCatalogReader,
        directory: BaseRestaurantDirectory,
        clock: Callable[[], datetime] = utcnow,
        retry_delay: float = 0.0,
    ):
        self._session_factory = session_factory
        self._catalog = catalog
        self._directory = directory
        self._clock = clock
        self._retry_delay = retry_delay

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self._session_factory,
            work,
            retry_delay=self._retry_delay,
            operation=operation,
        )

    # =========================================================================
    # PLACEMENT
    # =========================================================================

    async def add_order(self, principal: Principal, request: OrderCreate) -> OrderResponse:
        """
        Place an order priced from the catalog.

        Raises:
            ValidationError: Empty cart, quantity outside [1, MAX_LINE_QUANTITY]
                or a total too large to store
            Forbidden: Principal is not the ordering client
            RestaurantNotFound / RestaurantInactive
            ProductNotFound / ProductInactive / ProductRestaurantMismatch
        """
        logger.info(
            f"Placing order for client #{request.client_id} "
            f"at restaurant #{request.restaurant_id} ({len(request.lines)} lines)"
        )

        self._validate_cart(request)

        if request.client_id != principal.user_id:
            logger.warning(
                f"User #{principal.user_id} tried to order on behalf of client #{request.client_id}"
            )
            raise Forbidden("Orders can only be placed by the client themselves")

        restaurant = await self._directory.get_restaurant(request.restaurant_id)
        if restaurant is None:
            raise RestaurantNotFound(request.restaurant_id)
        if not restaurant.is_active:
            raise RestaurantInactive(request.restaurant_id)

        line_values = []
        for position, item in enumerate(request.lines):
            product = await self._catalog.get_product(item.product_id)
            if product is None:
                raise ProductNotFound(item.product_id)
            if not product.is_active:
                raise ProductInactive(item.product_id)
            if product.restaurant_id != request.restaurant_id:
                raise ProductRestaurantMismatch(
                    item.product_id, request.restaurant_id, product.restaurant_id
                )

            unit_price = to_money(product.price)
            line_values.append({
                "position": position,
                "product_id": product.product_id,
                "product_name": product.name,
                "unit_price": unit_price,
                "quantity": item.quantity,
                "subtotal": line_subtotal(unit_price, item.quantity),
            })

        total = order_total(values["subtotal"] for values in line_values)
        if total > MAX_AMOUNT:
            raise ValidationError(
                f"Order total {total} exceeds the maximum of {MAX_AMOUNT}",
                {"total": str(total)},
            )
        now = self._clock()

        async def _persist(session: AsyncSession) -> OrderResponse:
            order = Order(
                client_id=request.client_id,
                restaurant_id=request.restaurant_id,
                restaurant_name=restaurant.name,
                status=INITIAL_STATUS,
                comments=request.comments,
                total=total,
                created_at=now,
                updated_at=now,
                lines=[OrderLine(**values) for values in line_values],
            )
            session.add(order)
            await session.flush()
            return OrderResponse.model_validate(order)

        response = await self._run(_persist, "add order")
        logger.info(f"Order #{response.id} created - total {response.total}")
        return response

    @staticmethod
    def _validate_cart(request: OrderCreate) -> None:
        if not request.lines:
            raise ValidationError("An order must contain at least one line")

        for position, item in enumerate(request.lines):
            if isinstance(item.quantity, bool) or item.quantity < 1:
                raise ValidationError(
                    f"Line {position}: quantity must be at least 1",
                    {"position": position, "product_id": item.product_id, "quantity": item.quantity},
                )
            if item.quantity > MAX_LINE_QUANTITY:
                raise ValidationError(
                    f"Line {position}: quantity must be at most {MAX_LINE_QUANTITY}",
                    {"position": position, "product_id": item.product_id, "quantity": item.quantity},
                )

    # =========================================================================
    # MUTATION
    # =========================================================================

    async def update_order(
        self,
        principal: Principal,
        order_id: int,
        update: OrderUpdate,
    ) -> OrderResponse:
        """
        Change status and/or comments of an order.

        The restaurant owner may request any listed transition; the client
        may only cancel. Total and lines never change here.

        Raises:
            OrderNotFound, Forbidden, Conflict, InvalidTransition
        """
        fields = update.model_fields_set
        wants_status = update.status is not None
        wants_comments = "comments" in fields

        logger.info(f"Updating order #{order_id} (fields: {sorted(fields)})")

        async def _apply(session: AsyncSession) -> OrderResponse:
            order, owner_user_id = await self._load(session, order_id)
            is_client, is_owner = self._relation(principal, order, owner_user_id)

            if not (is_client or is_owner):
                logger.warning(f"User #{principal.user_id} denied update of order #{order_id}")
                raise Forbidden("You cannot modify this order")
            if wants_status and not is_owner and update.status != OrderStatus.CANCELLED:
                raise Forbidden("Clients may only cancel their orders")

            if update.expected_version is not None and update.expected_version != order.version:
                raise Conflict(
                    f"Order #{order_id} changed since version {update.expected_version}",
                    {"order_id": order_id, "current_version": order.version},
                )

            if not (wants_status or wants_comments):
                return OrderResponse.model_validate(order)

            if wants_status:
                ensure_transition(order.status, update.status, order_id)
                logger.info(f"Order #{order_id}: {order.status.value} -> {update.status.value}")
                order.status = update.status
            if wants_comments:
                order.comments = update.comments

            order.updated_at = self._clock()
            await session.flush()
            return OrderResponse.model_validate(order)

        return await self._run(_apply, f"update order #{order_id}")

    async def delete_order(self, principal: Principal, order_id: int) -> None:
        """
        Delete an order and its lines.

        Only PENDING and CANCELLED orders may be deleted; anything in
        flight or delivered stays as audit trail.

        Raises:
            OrderNotFound, Forbidden, OrderNotDeletable, Conflict
        """
        logger.info(f"Deleting order #{order_id}")

        async def _delete(session: AsyncSession) -> None:
            order, owner_user_id = await self._load(session, order_id)
            is_client, is_owner = self._relation(principal, order, owner_user_id)

            if not (is_client or is_owner):
                logger.warning(f"User #{principal.user_id} denied deletion of order #{order_id}")
                raise Forbidden("You cannot delete this order")
            if not is_deletable(order.status):
                logger.warning(f"Order #{order_id} not deletable while {order.status.value}")
                raise OrderNotDeletable(order_id, order.status)

            await session.delete(order)
            await session.flush()

        await self._run(_delete, f"delete order #{order_id}")
        logger.info(f"Order #{order_id} deleted")

    # =========================================================================
    # READS
    # =========================================================================

    async def find_order_by_id(self, principal: Principal, order_id: int) -> OrderResponse:
        async def _read(session: AsyncSession) -> OrderResponse:
            order, owner_user_id = await self._load(session, order_id)
            is_client, is_owner = self._relation(principal, order, owner_user_id)
            if not (is_client or is_owner):
                logger.warning(f"User #{principal.user_id} denied access to order #{order_id}")
                raise Forbidden("You cannot view this order")
            return OrderResponse.model_validate(order)

        return await self._run(_read, f"find order #{order_id}")

    async def find_all_orders(self, principal: Principal, restaurant_id: int) -> list[OrderResponse]:
        """All orders of one restaurant, oldest first. Owner only."""
        logger.info(f"Retrieving all orders of restaurant #{restaurant_id}")
        await self._require_owner(principal, restaurant_id)
        return await self._select(Order.restaurant_id == restaurant_id)

    async def find_all_orders_by_owner_id(
        self,
        principal: Principal,
        owner_id: int,
    ) -> list[OrderResponse]:
        """Orders across every restaurant the owner has."""
        restaurant_ids = await self._owned_restaurant_ids(principal, owner_id)
        if not restaurant_ids:
            return []
        return await self._select(Order.restaurant_id.in_(restaurant_ids))

    async def find_orders_by_owner_id_window(
        self,
        principal: Principal,
        owner_id: int,
        offset: int,
        limit: int,
    ) -> tuple[list[OrderResponse], int]:
        """
        One slice of an owner's orders plus the total count.

        Returns:
            (orders in the slice, total number of the owner's orders)
        """
        restaurant_ids = await self._owned_restaurant_ids(principal, owner_id)
        if not restaurant_ids:
            return [], 0

        condition = Order.restaurant_id.in_(restaurant_ids)

        async def _read(session: AsyncSession) -> tuple[list[OrderResponse], int]:
            total_result = await session.execute(
                select(func.count(Order.id)).where(condition)
            )
            total = total_result.scalar() or 0

            result = await session.execute(
                select(Order)
                .where(condition)
                .order_by(Order.created_at, Order.id)
                .offset(offset)
                .limit(limit)
            )
            orders = result.scalars().all()
            return [OrderResponse.model_validate(o) for o in orders], total

        return await self._run(_read, f"orders of owner #{owner_id} [{offset}:+{limit}]")

    async def find_by_created_at_between(
        self,
        principal: Principal,
        restaurant_id: int,
        start: datetime,
        end: datetime,
    ) -> list[OrderResponse]:
        """Restaurant orders created in [start, end)."""
        start, end = self._range(start, end)
        logger.info(f"Retrieving orders of restaurant #{restaurant_id} between {start} and {end}")
        await self._require_owner(principal, restaurant_id)
        return await self._select(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= start,
            Order.created_at < end,
        )

    async def find_by_client_id(self, principal: Principal, client_id: int) -> list[OrderResponse]:
        logger.info(f"Retrieving orders of client #{client_id}")
        self._require_client(principal, client_id)
        return await self._select(Order.client_id == client_id)

    async def find_by_client_id_and_created_at_between(
        self,
        principal: Principal,
        client_id: int,
        start: datetime,
        end: datetime,
    ) -> list[OrderResponse]:
        """Client orders created in [start, end)."""
        start, end = self._range(start, end)
        self._require_client(principal, client_id)
        return await self._select(
            Order.client_id == client_id,
            Order.created_at >= start,
            Order.created_at < end,
        )

    async def find_by_status_and_restaurant_id(
        self,
        principal: Principal,
        status: Union[OrderStatus, str],
        restaurant_id: int,
    ) -> list[OrderResponse]:
        try:
            status = OrderStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown status {status!r}",
                {"allowed": [s.value for s in OrderStatus]},
            )

        await self._require_owner(principal, restaurant_id)
        return await self._select(
            Order.restaurant_id == restaurant_id,
            Order.status == status,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    async def _load(session: AsyncSession, order_id: int) -> tuple[Order, Optional[int]]:
        """The order and its restaurant's owner, read on the caller's session."""
        result = await session.execute(
            select(Order, Restaurant.owner_user_id)
            .outerjoin(Restaurant, Restaurant.id == Order.restaurant_id)
            .where(Order.id == order_id)
        )
        row = result.one_or_none()
        if row is None:
            logger.warning(f"Order #{order_id} not found")
            raise OrderNotFound(order_id)
        return row[0], row[1]

    async def _select(self, *conditions: Any) -> list[OrderResponse]:
        async def _read(session: AsyncSession) -> list[OrderResponse]:
            result = await session.execute(
                select(Order).where(*conditions).order_by(Order.created_at, Order.id)
            )
            return [OrderResponse.model_validate(o) for o in result.scalars().all()]

        orders = await self._run(_read, "order query")
        logger.debug(f"Query returned {len(orders)} orders")
        return orders

    @staticmethod
    def _relation(
        principal: Principal,
        order: Order,
        owner_user_id: Optional[int],
    ) -> tuple[bool, bool]:
        """(is the order's client, owns the order's restaurant)"""
        is_client = order.client_id == principal.user_id
        is_owner = owner_user_id is not None and owner_user_id == principal.user_id
        return is_client, is_owner

    async def _require_owner(self, principal: Principal, restaurant_id: int) -> RestaurantInfo:
        restaurant = await self._directory.get_restaurant(restaurant_id)
        if restaurant is None:
            raise RestaurantNotFound(restaurant_id)
        if restaurant.owner_user_id != principal.user_id:
            logger.warning(
                f"User #{principal.user_id} denied access to orders of restaurant #{restaurant_id}"
            )
            raise Forbidden("You do not own this restaurant")
        return restaurant

    @staticmethod
    def _require_client(principal: Principal, client_id: int) -> None:
        if client_id != principal.user_id:
            logger.warning(f"User #{principal.user_id} denied access to orders of client #{client_id}")
            raise Forbidden("You can only view your own orders")

    async def _owned_restaurant_ids(self, principal: Principal, owner_id: int) -> list[int]:
        if owner_id != principal.user_id:
            logger.warning(f"User #{principal.user_id} denied access to orders of owner #{owner_id}")
            raise Forbidden("You can only view orders of your own restaurants")

        restaurant_ids = await self._directory.list_restaurant_ids_by_owner(owner_id)
        if not restaurant_ids:
            logger.warning(f"Owner #{owner_id} has no restaurants")
        return restaurant_ids

    @staticmethod
    def _range(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
        if start is None or end is None:
            raise ValidationError("Both start and end are required for a date range")
        start, end = to_utc(start), to_utc(end)
        if start > end:
            raise ValidationError(
                "Range start must not be after its end",
                {"start": start.isoformat(), "end": end.isoformat()},
            )
        return start, end
