"""
Order lifecycle services: engine, state machine, pricing and listings.
"""

from restaurant_orders.services.orders.engine import OrderEngine
from restaurant_orders.services.orders.queries import OrderQueryFacade
from restaurant_orders.services.orders.state_machine import (
    TRANSITIONS,
    can_transition,
    ensure_transition,
)

__all__ = [
    "OrderEngine",
    "OrderQueryFacade",
    "TRANSITIONS",
    "can_transition",
    "ensure_transition",
]
