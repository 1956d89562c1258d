"""
Order status state machine.

    PENDING        -> ACCEPTED | CANCELLED
    ACCEPTED       -> IN_PREPARATION | CANCELLED
    IN_PREPARATION -> READY | CANCELLED
    READY          -> DELIVERED
    DELIVERED      (terminal)
    CANCELLED      (terminal)

Everything not listed, self-transitions included, is rejected.
"""

from typing import Optional

from restaurant_orders.core.exceptions import InvalidTransition
from restaurant_orders.models import OrderStatus

INITIAL_STATUS = OrderStatus.PENDING

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.IN_PREPARATION, OrderStatus.CANCELLED}),
    OrderStatus.IN_PREPARATION: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Orders may only be removed before work starts or once abandoned
DELETABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in TRANSITIONS[current]


def ensure_transition(
    current: OrderStatus,
    requested: OrderStatus,
    order_id: Optional[int] = None,
) -> None:
    """Raise InvalidTransition unless `current -> requested` is listed."""
    if not can_transition(current, requested):
        raise InvalidTransition(order_id, current, requested)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_deletable(status: OrderStatus) -> bool:
    return status in DELETABLE_STATUSES
