"""
Shared fixtures: a throwaway SQLite database per test, a seeded catalog,
a deterministic clock and the principals used across the suite.

Seed data:
    restaurant 1 "Trattoria"     owner 100  active
    restaurant 2 "Sushi Bar"     owner 100  active
    restaurant 3 "Closed Diner"  owner 200  inactive

    product 1 Margherita   12.50  restaurant 1
    product 2 Tiramisu      7.33  restaurant 1
    product 3 Old Special   9.00  restaurant 1  inactive
    product 4 Nigiri       15.00  restaurant 2
    product 5 Pancakes      6.00  restaurant 3
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from restaurant_orders.core.security import Principal, UserRole
from restaurant_orders.database import build_engine, build_session_maker, init_db
from restaurant_orders.models import Product, Restaurant
from restaurant_orders.schemas import OrderCreate, OrderLineCreate
from restaurant_orders.services.catalog.sql import SqlCatalogReader
from restaurant_orders.services.directory.sql import SqlRestaurantDirectory
from restaurant_orders.services.orders import OrderEngine, OrderQueryFacade
from restaurant_orders.services.reviews import ReviewLedger

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

CLIENT_ID = 42
OTHER_CLIENT_ID = 43
OWNER_ID = 100
OTHER_OWNER_ID = 200


class FakeClock:
    """Returns T0, T0 + step, T0 + 2*step, ... on successive calls."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + self.step
        return now


@pytest.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return build_session_maker(db_engine)


@pytest.fixture
async def seed(session_maker):
    async with session_maker() as session:
        async with session.begin():
            trattoria = Restaurant(name="Trattoria", owner_user_id=OWNER_ID, is_active=True)
            sushi = Restaurant(name="Sushi Bar", owner_user_id=OWNER_ID, is_active=True)
            diner = Restaurant(name="Closed Diner", owner_user_id=OTHER_OWNER_ID, is_active=False)
            session.add_all([trattoria, sushi, diner])
            await session.flush()

            margherita = Product(restaurant_id=trattoria.id, name="Margherita", price=Decimal("12.50"))
            tiramisu = Product(restaurant_id=trattoria.id, name="Tiramisu", price=Decimal("7.33"))
            special = Product(
                restaurant_id=trattoria.id, name="Old Special", price=Decimal("9.00"), is_active=False
            )
            nigiri = Product(restaurant_id=sushi.id, name="Nigiri", price=Decimal("15.00"))
            pancakes = Product(restaurant_id=diner.id, name="Pancakes", price=Decimal("6.00"))
            session.add_all([margherita, tiramisu, special, nigiri, pancakes])
            await session.flush()

            return SimpleNamespace(
                trattoria=trattoria.id,
                sushi=sushi.id,
                diner=diner.id,
                margherita=margherita.id,
                tiramisu=tiramisu.id,
                special=special.id,
                nigiri=nigiri.id,
                pancakes=pancakes.id,
            )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog(session_maker):
    return SqlCatalogReader(session_maker)


@pytest.fixture
def directory(session_maker):
    return SqlRestaurantDirectory(session_maker)


@pytest.fixture
def order_engine(session_maker, catalog, directory, clock, seed):
    return OrderEngine(session_maker, catalog, directory, clock=clock)


@pytest.fixture
def query_facade(order_engine):
    return OrderQueryFacade(order_engine, default_page_size=20, max_page_size=50)


@pytest.fixture
def review_ledger(session_maker, directory, clock, seed):
    return ReviewLedger(session_maker, directory, clock=clock)


@pytest.fixture
def client():
    return Principal(user_id=CLIENT_ID, role=UserRole.CLIENT)


@pytest.fixture
def other_client():
    return Principal(user_id=OTHER_CLIENT_ID, role=UserRole.CLIENT)


@pytest.fixture
def owner():
    return Principal(user_id=OWNER_ID, role=UserRole.RESTAURANT)


@pytest.fixture
def other_owner():
    return Principal(user_id=OTHER_OWNER_ID, role=UserRole.RESTAURANT)


def cart(restaurant_id: int, *lines: tuple[int, int], client_id: int = CLIENT_ID, comments=None) -> OrderCreate:
    """OrderCreate from (product_id, quantity) pairs."""
    return OrderCreate(
        restaurant_id=restaurant_id,
        client_id=client_id,
        lines=[OrderLineCreate(product_id=pid, quantity=qty) for pid, qty in lines],
        comments=comments,
    )


@pytest.fixture
def make_cart():
    return cart
