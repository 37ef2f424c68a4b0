"""Order status state machine."""
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from exceptions import InvalidTransition
from models import OrderStatus

# Permitted next states for every status; terminal states map to nothing
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Edges an administrator may apply; PENDING -> PAID belongs to the payment flow
ADMIN_TRANSITIONS: FrozenSet[Tuple[OrderStatus, OrderStatus]] = frozenset({
    (OrderStatus.PAID, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.COMPLETED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
})

TERMINAL_STATES = frozenset(status for status, nxt in TRANSITIONS.items() if not nxt)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def ensure_transition(
    current: OrderStatus,
    target: OrderStatus,
    allowed: Optional[Iterable[Tuple[OrderStatus, OrderStatus]]] = None
) -> None:
    """
    Reject a status change that is not an edge of the state machine.

    Args:
        current: Status the order is in now
        target: Requested status
        allowed: Optional subset of edges the caller is permitted to apply

    Raises:
        InvalidTransition: If the edge is missing or not permitted
    """
    current, target = OrderStatus(current), OrderStatus(target)
    if current in TERMINAL_STATES:
        raise InvalidTransition(
            current.value,
            target.value,
            message=f"Order is already {current.value} and can no longer change"
        )
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)
    if allowed is not None and (current, target) not in set(allowed):
        raise InvalidTransition(current.value, target.value)
