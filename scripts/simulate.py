"""
Concurrency Simulation Script

Seeds a restaurant with a small menu, fires many concurrent orders at the
API, then races two status changes on the same order.
Run from project root (API on API_BASE_URL): python scripts/simulate.py
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from restaurant_orders.database import get_engine, get_session_maker, init_db
from restaurant_orders.models import Product, Restaurant

API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50
OWNER_ID = 900

MENU_ITEMS = [
    ("Pizza Margherita", "14.99"),
    ("Pepperoni Pizza", "16.99"),
    ("Caesar Salad", "8.99"),
    ("Garlic Bread", "5.99"),
    ("Pasta Carbonara", "13.99"),
    ("Tiramisu", "7.99"),
    ("Coke", "2.99"),
]


def headers(user_id: int, role: str) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": role}


async def seed() -> tuple[int, list[int]]:
    """Create one active restaurant and its menu; returns (restaurant_id, product_ids)."""
    await init_db()
    now = datetime.now(timezone.utc)
    async with get_session_maker()() as session:
        async with session.begin():
            restaurant = Restaurant(
                name=f"Simulation Pizzeria {now:%H%M%S}",
                owner_user_id=OWNER_ID,
                is_active=True,
                created_at=now,
            )
            session.add(restaurant)
            await session.flush()
            products = [
                Product(
                    restaurant_id=restaurant.id,
                    name=name,
                    price=Decimal(price),
                    is_active=True,
                    created_at=now,
                )
                for name, price in MENU_ITEMS
            ]
            session.add_all(products)
            await session.flush()
            ids = restaurant.id, [p.id for p in products]
    await get_engine().dispose()
    return ids


def random_cart(restaurant_id: int, product_ids: list[int], client_id: int) -> dict[str, Any]:
    lines = [
        {"product_id": pid, "quantity": random.randint(1, 3)}
        for pid in random.sample(product_ids, random.randint(1, 4))
    ]
    return {
        "restaurant_id": restaurant_id,
        "client_id": client_id,
        "lines": lines,
        "comments": random.choice([None, "Extra napkins", "Ring doorbell", "No onions"]),
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    restaurant_id: int,
    product_ids: list[int],
) -> dict[str, Any]:
    client_id = 1000 + order_num
    payload = random_cart(restaurant_id, product_ids, client_id)
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            headers=headers(client_id, "CLIENT"),
            timeout=30.0
        )
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100],
                "time": round(time.time() - start_time, 3)}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code == 201:
        data = response.json()
        return {"order_num": order_num, "success": True, "order_id": data["id"],
                "total": Decimal(data["total"]), "time": elapsed}
    return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}


async def race_transition(client: httpx.AsyncClient, order_id: int) -> list[int]:
    """Send ACCEPTED and CANCELLED for the same PENDING order at once."""
    response = await client.get(
        f"{API_BASE_URL}/api/orders/{order_id}",
        headers=headers(OWNER_ID, "RESTAURANT"),
    )
    client_id = response.json()["client_id"]
    owner = client.patch(
        f"{API_BASE_URL}/api/orders/{order_id}",
        json={"status": "ACCEPTED", "expected_version": 1},
        headers=headers(OWNER_ID, "RESTAURANT"),
    )
    cancel = client.patch(
        f"{API_BASE_URL}/api/orders/{order_id}",
        json={"status": "CANCELLED", "expected_version": 1},
        headers=headers(client_id, "CLIENT"),
    )
    responses = await asyncio.gather(owner, cancel)
    return sorted(r.status_code for r in responses)


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("CONCURRENCY SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print("=" * 70)

    restaurant_id, product_ids = await seed()
    print(f"Seeded restaurant #{restaurant_id} with {len(product_ids)} products")

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(*[
            send_order(client, i + 1, restaurant_id, product_ids) for i in range(num_orders)
        ])
        total_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
        print(f"Failed Orders: {len(failed)}/{num_orders}")
        print(f"Total Time: {total_time}s")

        if successful:
            avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
            revenue = sum((r["total"] for r in successful), Decimal("0"))
            print(f"Average Response: {avg_time}s")
            print(f"Total Revenue: ${revenue}")

            codes = await race_transition(client, successful[0]["order_id"])
            verdict = "OK" if codes == [200, 409] else "UNEXPECTED"
            print(f"\nTransition race on order #{successful[0]['order_id']}: {codes} {verdict}")

        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\nNext: queue a report and run python scripts/verify.py --restaurant "
          f"{restaurant_id}")
    print("=" * 70)

    return {
        "restaurant_id": restaurant_id,
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    asyncio.run(run_simulation(args.orders))
