"""
Scoped listings, date ranges and owner pagination.
"""

from datetime import timedelta

import pytest

from restaurant_orders.core.exceptions import Forbidden, RestaurantNotFound, ValidationError
from restaurant_orders.core.security import Principal, UserRole
from restaurant_orders.models import OrderStatus
from restaurant_orders.schemas import OrderPage, OrderUpdate


@pytest.fixture
async def orders(order_engine, seed, client, other_client, make_cart):
    """Five orders, one clock tick apart: three at the trattoria, two at the sushi bar."""
    placed = []
    for restaurant, product, principal in [
        (seed.trattoria, seed.margherita, client),
        (seed.trattoria, seed.tiramisu, other_client),
        (seed.sushi, seed.nigiri, client),
        (seed.trattoria, seed.margherita, client),
        (seed.sushi, seed.nigiri, other_client),
    ]:
        placed.append(await order_engine.add_order(
            principal, make_cart(restaurant, (product, 1), client_id=principal.user_id)
        ))
    return placed


# =============================================================================
# RESTAURANT
# =============================================================================

async def test_restaurant_listing_is_scoped(query_facade, seed, owner, orders):
    listed = await query_facade.list_restaurant_orders(owner, seed.trattoria)

    assert [o.id for o in listed] == [orders[0].id, orders[1].id, orders[3].id]
    assert all(o.restaurant_id == seed.trattoria for o in listed)


async def test_restaurant_listing_requires_owner(query_facade, seed, client, other_owner, orders):
    for principal in (client, other_owner):
        with pytest.raises(Forbidden):
            await query_facade.list_restaurant_orders(principal, seed.trattoria)


async def test_unknown_restaurant(query_facade, owner, orders):
    with pytest.raises(RestaurantNotFound):
        await query_facade.list_restaurant_orders(owner, 999)


async def test_status_filter(query_facade, order_engine, seed, owner, orders):
    await order_engine.update_order(owner, orders[1].id, OrderUpdate(status=OrderStatus.ACCEPTED))

    accepted = await query_facade.list_restaurant_orders(owner, seed.trattoria, status="ACCEPTED")
    pending = await query_facade.list_restaurant_orders(owner, seed.trattoria, status=OrderStatus.PENDING)

    assert [o.id for o in accepted] == [orders[1].id]
    assert [o.id for o in pending] == [orders[0].id, orders[3].id]


async def test_unknown_status_is_rejected(query_facade, seed, owner, orders):
    with pytest.raises(ValidationError):
        await query_facade.list_restaurant_orders(owner, seed.trattoria, status="LOST")


async def test_range_is_half_open(query_facade, seed, owner, orders):
    start = orders[0].created_at
    end = orders[3].created_at

    listed = await query_facade.list_restaurant_orders(owner, seed.trattoria, start=start, end=end)

    assert [o.id for o in listed] == [orders[0].id, orders[1].id]


async def test_empty_range_returns_nothing(query_facade, seed, owner, orders):
    at = orders[0].created_at
    assert await query_facade.list_restaurant_orders(owner, seed.trattoria, start=at, end=at) == []


async def test_naive_bounds_are_utc(query_facade, seed, owner, orders):
    start = orders[0].created_at.replace(tzinfo=None)
    end = (orders[4].created_at + timedelta(minutes=1)).replace(tzinfo=None)

    listed = await query_facade.list_restaurant_orders(owner, seed.trattoria, start=start, end=end)

    assert len(listed) == 3


async def test_range_and_status_combine(query_facade, order_engine, seed, owner, orders):
    await order_engine.update_order(owner, orders[3].id, OrderUpdate(status=OrderStatus.ACCEPTED))

    listed = await query_facade.list_restaurant_orders(
        owner,
        seed.trattoria,
        status="PENDING",
        start=orders[0].created_at,
        end=orders[4].created_at,
    )

    assert [o.id for o in listed] == [orders[0].id, orders[1].id]


async def test_inverted_range_is_rejected(query_facade, seed, owner, orders):
    with pytest.raises(ValidationError):
        await query_facade.list_restaurant_orders(
            owner, seed.trattoria, start=orders[3].created_at, end=orders[0].created_at
        )


async def test_range_needs_both_bounds(query_facade, seed, owner, orders):
    with pytest.raises(ValidationError):
        await query_facade.list_restaurant_orders(owner, seed.trattoria, start=orders[0].created_at)


# =============================================================================
# CLIENT
# =============================================================================

async def test_client_sees_only_own_orders(query_facade, client, orders):
    listed = await query_facade.list_client_orders(client, client.user_id)

    assert [o.id for o in listed] == [orders[0].id, orders[2].id, orders[3].id]


async def test_client_range(query_facade, client, orders):
    listed = await query_facade.list_client_orders(
        client, client.user_id, start=orders[1].created_at, end=orders[4].created_at
    )
    assert [o.id for o in listed] == [orders[2].id, orders[3].id]


async def test_client_cannot_list_other_clients(query_facade, client, other_client, orders):
    with pytest.raises(Forbidden):
        await query_facade.list_client_orders(client, other_client.user_id)


# =============================================================================
# OWNER / PAGINATION
# =============================================================================

async def test_owner_listing_spans_restaurants(query_facade, owner, orders):
    listed = await query_facade.list_owner_orders(owner, owner.user_id)
    assert [o.id for o in listed] == [o.id for o in orders]


async def test_owner_pages(query_facade, owner, orders):
    first = await query_facade.list_owner_orders(owner, owner.user_id, page=0, page_size=2)
    last = await query_facade.find_orders_by_owner_id_paged(owner, owner.user_id, 2, 2)

    assert isinstance(first, OrderPage)
    assert [o.id for o in first.items] == [orders[0].id, orders[1].id]
    assert (first.total, first.page, first.page_size, first.total_pages) == (5, 0, 2, 3)
    assert [o.id for o in last.items] == [orders[4].id]


async def test_page_past_the_end_is_empty(query_facade, owner, orders):
    page = await query_facade.find_orders_by_owner_id_paged(owner, owner.user_id, 10, 2)
    assert page.items == []
    assert page.total == 5


async def test_page_size_defaults(query_facade, owner, orders):
    page = await query_facade.list_owner_orders(owner, owner.user_id, page=0)
    assert page.page_size == 20
    assert len(page.items) == 5


@pytest.mark.parametrize("page,page_size", [(-1, 2), (0, 0), (0, 51)])
async def test_invalid_paging_is_rejected(query_facade, owner, orders, page, page_size):
    with pytest.raises(ValidationError):
        await query_facade.find_orders_by_owner_id_paged(owner, owner.user_id, page, page_size)


@pytest.mark.parametrize("page,page_size", [(None, 0), (0, 0), (-1, None)])
async def test_explicit_zero_page_size_is_not_defaulted(query_facade, owner, orders, page, page_size):
    with pytest.raises(ValidationError):
        await query_facade.list_owner_orders(owner, owner.user_id, page=page, page_size=page_size)


async def test_owner_cannot_list_other_owner(query_facade, owner, other_owner, orders):
    with pytest.raises(Forbidden):
        await query_facade.list_owner_orders(other_owner, owner.user_id)


async def test_owner_without_restaurants(query_facade, orders):
    newcomer = Principal(user_id=300, role=UserRole.RESTAURANT)

    assert await query_facade.list_owner_orders(newcomer, 300) == []

    page = await query_facade.find_orders_by_owner_id_paged(newcomer, 300, 0, 10)
    assert (page.items, page.total, page.total_pages) == ([], 0, 0)
