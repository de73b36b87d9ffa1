"""Order status state machine: the transition table and the model helpers."""

from __future__ import annotations

import pytest

from modules.orders.constants import (
    REFUNDABLE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.models import Order

pytestmark = pytest.mark.unit

ALLOWED = [(source, target) for source, targets in VALID_TRANSITIONS.items() for target in targets]
FORBIDDEN = [
    (source, target)
    for source in OrderStatus.values
    for target in OrderStatus.values
    if target not in VALID_TRANSITIONS[source]
]


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(OrderStatus.values)

    def test_terminal_states_have_no_way_out(self):
        for status in TERMINAL_STATES:
            assert VALID_TRANSITIONS[status] == set()

    def test_refundable_states_can_enter_refunding(self):
        for status in REFUNDABLE_STATES:
            assert OrderStatus.REFUNDING in VALID_TRANSITIONS[status]

    def test_refunding_returns_to_every_refundable_state(self):
        assert REFUNDABLE_STATES <= VALID_TRANSITIONS[OrderStatus.REFUNDING]

    def test_pending_cannot_skip_payment(self):
        assert OrderStatus.SHIPPED not in VALID_TRANSITIONS[OrderStatus.PENDING]
        assert OrderStatus.REFUNDING not in VALID_TRANSITIONS[OrderStatus.PENDING]


class TestOrderHelpers:
    @pytest.mark.parametrize(("source", "target"), ALLOWED)
    def test_allowed_transitions(self, source, target):
        assert Order(status=source).can_transition_to(target)

    @pytest.mark.parametrize(("source", "target"), FORBIDDEN)
    def test_forbidden_transitions(self, source, target):
        assert not Order(status=source).can_transition_to(target)

    @pytest.mark.parametrize("status", OrderStatus.values)
    def test_is_terminal(self, status):
        assert Order(status=status).is_terminal is (status in TERMINAL_STATES)

    def test_status_name_is_the_display_label(self):
        assert Order(status=OrderStatus.PENDING_SHIP).status_name == "Preparing shipment"
        assert Order(status=OrderStatus.REFUNDING).status_name == "Refund in progress"
