"""Transition table behavior for the order and delivery lifecycles."""

import pytest

from foodflow.core.errors import InvalidTransitionError
from foodflow.models import DeliveryStatus, OrderStatus
from foodflow.services.order_status import DELIVERY_STATUS_MACHINE, ORDER_STATUS_MACHINE
from foodflow.services.state_machine import StateMachine


def test_order_machine_allows_only_direct_edges() -> None:
    assert ORDER_STATUS_MACHINE.can_transition(OrderStatus.PENDING, OrderStatus.CONFIRMED)
    assert ORDER_STATUS_MACHINE.can_transition(OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED)
    assert not ORDER_STATUS_MACHINE.can_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert not ORDER_STATUS_MACHINE.can_transition(OrderStatus.PREPARING, OrderStatus.PREPARING)


def test_every_non_terminal_order_state_can_be_cancelled() -> None:
    for state in ORDER_STATUS_MACHINE.states - ORDER_STATUS_MACHINE.terminal_states:
        assert ORDER_STATUS_MACHINE.can_transition(state, OrderStatus.CANCELLED)


def test_terminal_states_have_no_exits() -> None:
    assert ORDER_STATUS_MACHINE.terminal_states == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    assert DELIVERY_STATUS_MACHINE.terminal_states == {DeliveryStatus.DELIVERED}
    for target in OrderStatus:
        assert not ORDER_STATUS_MACHINE.can_transition(OrderStatus.CANCELLED, target)


def test_delivery_machine_is_linear() -> None:
    path = [DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED]
    for current, target in zip(path, path[1:]):
        assert DELIVERY_STATUS_MACHINE.allowed(current) == {target}


def test_ensure_transition_names_both_states() -> None:
    with pytest.raises(InvalidTransitionError) as exc_info:
        ORDER_STATUS_MACHINE.ensure_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)

    assert exc_info.value.message == "Cannot transition from PENDING to DELIVERED"
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "INVALID_TRANSITION"


def test_machine_rejects_targets_missing_from_table() -> None:
    with pytest.raises(ValueError):
        StateMachine({"a": {"b"}})
