"""
Order status transition table.

pending -> confirmed -> preparing -> out_for_delivery -> delivered, with
cancelled reachable only from pending or confirmed. delivered and cancelled
are terminal.
"""

from typing import FrozenSet, Mapping

from .models import OrderStatus

VALID_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset(
    status for status, allowed in VALID_TRANSITIONS.items() if not allowed
)

CANCELLABLE_STATES: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING})


def allowed_transitions(current: OrderStatus) -> FrozenSet[OrderStatus]:
    """Statuses an order in `current` may move to."""
    return VALID_TRANSITIONS.get(current, frozenset())


def is_valid_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """True if (current -> requested) is in the table. Self-transitions never are."""
    return requested in allowed_transitions(current)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES
