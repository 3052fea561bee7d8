"""
Order transition table and the confirmation disclaimer gate
"""

import pytest

from models import OrderStatus
from utils.exception_handler import AcknowledgmentRequiredError, InvalidStateTransitionError
from utils.order_state_machine import (
    ORDER_CONFIRMATION_DISCLAIMERS,
    OrderStateValidator,
    missing_disclaimers,
    require_disclaimers,
)

ESCROW = OrderStatus.ESCROW.value
DELIVERING = OrderStatus.DELIVERING.value
AWAITING = OrderStatus.AWAITING_CONFIRMATION.value
COMPLETED = OrderStatus.COMPLETED.value
CANCELLED = OrderStatus.CANCELLED.value


class TestOrderTransitions:
    """Forward-only lifecycle"""

    @pytest.mark.parametrize("current,new", [
        (None, ESCROW),
        (ESCROW, DELIVERING),
        (DELIVERING, AWAITING),
        (DELIVERING, COMPLETED),
        (AWAITING, COMPLETED),
    ])
    def test_allowed(self, current, new):
        assert OrderStateValidator.is_valid_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (ESCROW, COMPLETED),
        (ESCROW, AWAITING),
        (AWAITING, DELIVERING),
        (COMPLETED, ESCROW),
        (COMPLETED, COMPLETED),
        (ESCROW, CANCELLED),
        (None, COMPLETED),
    ])
    def test_rejected(self, current, new):
        assert not OrderStateValidator.is_valid_transition(current, new)
        with pytest.raises(InvalidStateTransitionError):
            OrderStateValidator.ensure_transition(current, new)

    def test_terminal_states(self):
        assert OrderStateValidator.is_terminal_state(COMPLETED)
        assert OrderStateValidator.is_terminal_state(CANCELLED)
        assert not OrderStateValidator.is_terminal_state(ESCROW)

    def test_cancelled_is_unreachable(self):
        """Nothing transitions into cancelled"""
        assert OrderStateValidator.sources_for(CANCELLED) == set()

    def test_completion_sources(self):
        assert OrderStateValidator.sources_for(COMPLETED) == {DELIVERING, AWAITING}

    def test_valid_transitions_is_a_copy(self):
        targets = OrderStateValidator.get_valid_transitions(ESCROW)
        targets.add(COMPLETED)
        assert OrderStateValidator.get_valid_transitions(ESCROW) == {DELIVERING}

    def test_every_status_has_an_entry(self):
        for status in OrderStatus:
            assert status.value in OrderStateValidator.VALID_TRANSITIONS


class TestDisclaimers:
    """Buyer must accept all six statements before confirming"""

    def test_six_disclaimers(self):
        assert len(ORDER_CONFIRMATION_DISCLAIMERS) == 6

    def test_all_accepted(self):
        require_disclaimers(list(ORDER_CONFIRMATION_DISCLAIMERS))

    def test_none_accepted(self):
        with pytest.raises(AcknowledgmentRequiredError) as exc_info:
            require_disclaimers(None)
        assert exc_info.value.missing == list(ORDER_CONFIRMATION_DISCLAIMERS)

    def test_one_missing(self):
        accepted = [key for key in ORDER_CONFIRMATION_DISCLAIMERS if key != "no_refunds"]
        assert missing_disclaimers(accepted) == ["no_refunds"]

    def test_unknown_keys_do_not_count(self):
        assert len(missing_disclaimers(["yes", "agree"])) == 6
