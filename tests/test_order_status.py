import itertools

import pytest

from exceptions import InvalidTransition
from models import OrderStatus
from services.order_status import (
    ADMIN_TRANSITIONS,
    TERMINAL_STATES,
    TRANSITIONS,
    can_transition,
    ensure_transition,
)

EDGES = {
    (OrderStatus.PENDING, OrderStatus.PAID),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PAID, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.COMPLETED),
}


def test_table_covers_every_status():
    assert set(TRANSITIONS) == set(OrderStatus)


def test_terminal_states():
    assert TERMINAL_STATES == {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


@pytest.mark.parametrize("current,target", list(itertools.product(OrderStatus, repeat=2)))
def test_transition_allowed_only_along_edges(current, target):
    assert can_transition(current, target) == ((current, target) in EDGES)

    if (current, target) in EDGES:
        ensure_transition(current, target)
    else:
        with pytest.raises(InvalidTransition):
            ensure_transition(current, target)


def test_accepts_plain_strings():
    ensure_transition("PENDING", "PAID")
    with pytest.raises(InvalidTransition):
        ensure_transition("PENDING", "SHIPPED")


def test_admin_subset_excludes_payment():
    assert ADMIN_TRANSITIONS < EDGES
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(OrderStatus.PENDING, OrderStatus.PAID, allowed=ADMIN_TRANSITIONS)
    assert exc_info.value.current == "PENDING"
    assert exc_info.value.target == "PAID"


def test_admin_subset_allows_shipping():
    ensure_transition(OrderStatus.PAID, OrderStatus.SHIPPED, allowed=ADMIN_TRANSITIONS)


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_terminal_orders_explain_they_are_final(terminal, target):
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(terminal, target)

    assert exc_info.value.message == f"Order is already {terminal.value} and can no longer change"
    assert exc_info.value.current == terminal.value


def test_non_terminal_rejection_names_both_states():
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(OrderStatus.PAID, OrderStatus.CANCELLED)

    assert exc_info.value.message == "Cannot change order status from PAID to CANCELLED"
