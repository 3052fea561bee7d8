#!/usr/bin/env python3
"""
Order State Machine
Transition tables for escrow orders and admin-reviewed wallet requests
"""

import logging
from typing import Dict, List, Optional, Set

from models import OrderStatus
from utils.exception_handler import AcknowledgmentRequiredError, InvalidStateTransitionError

logger = logging.getLogger(__name__)


# Statements the buyer must accept before releasing escrow to the seller
ORDER_CONFIRMATION_DISCLAIMERS: Dict[str, str] = {
    "platform_not_responsible": "The website is NOT responsible for any issues that may occur after confirmation",
    "account_received": "You have received the account and verified all details are correct",
    "credentials_changed": "You have changed all account credentials (password, email, etc.)",
    "funds_released": "The money will be transferred to the seller immediately upon confirmation",
    "no_refunds": "No refunds or disputes will be accepted after confirmation",
    "buyer_satisfied": "You are satisfied with the account and its condition",
}

# Orders still holding buyer funds
PENDING_MONEY_STATUSES: Set[str] = {
    OrderStatus.ESCROW.value,
    OrderStatus.DELIVERING.value,
    OrderStatus.AWAITING_CONFIRMATION.value,
}


class OrderStateValidator:
    """Validates order state transitions and prevents invalid changes"""

    VALID_TRANSITIONS: Dict[Optional[str], Set[str]] = {
        # From None/Creation (purchase)
        None: {OrderStatus.ESCROW.value},
        # Seller delivers credentials
        OrderStatus.ESCROW.value: {OrderStatus.DELIVERING.value},
        # Buyer reviews; confirming straight from delivery is allowed
        OrderStatus.DELIVERING.value: {
            OrderStatus.AWAITING_CONFIRMATION.value,
            OrderStatus.COMPLETED.value,
        },
        OrderStatus.AWAITING_CONFIRMATION.value: {OrderStatus.COMPLETED.value},
        # Terminal states (no transitions allowed)
        OrderStatus.COMPLETED.value: set(),
        # Declared for display only; nothing transitions into it
        OrderStatus.CANCELLED.value: set(),
    }

    @classmethod
    def is_valid_transition(cls, current_status: Optional[str], new_status: str) -> bool:
        """Check if state transition is valid"""
        return new_status in cls.VALID_TRANSITIONS.get(current_status, set())

    @classmethod
    def get_valid_transitions(cls, current_status: Optional[str]) -> Set[str]:
        """Get all valid next states for current status"""
        return set(cls.VALID_TRANSITIONS.get(current_status, set()))

    @classmethod
    def sources_for(cls, new_status: str) -> Set[str]:
        """Statuses from which ``new_status`` can be reached"""
        return {
            source
            for source, targets in cls.VALID_TRANSITIONS.items()
            if source is not None and new_status in targets
        }

    @classmethod
    def is_terminal_state(cls, status: str) -> bool:
        """Check if status is terminal (no further transitions)"""
        return len(cls.VALID_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def ensure_transition(cls, current_status: Optional[str], new_status: str) -> None:
        if not cls.is_valid_transition(current_status, new_status):
            logger.warning(f"⚠️ INVALID_ORDER_TRANSITION: {current_status} -> {new_status}")
            raise InvalidStateTransitionError("order", current_status, new_status)


def missing_disclaimers(accepted: Optional[List[str]]) -> List[str]:
    accepted_keys = set(accepted or [])
    return [key for key in ORDER_CONFIRMATION_DISCLAIMERS if key not in accepted_keys]


def require_disclaimers(accepted: Optional[List[str]]) -> None:
    """Raise unless every confirmation disclaimer was accepted"""
    missing = missing_disclaimers(accepted)
    if missing:
        raise AcknowledgmentRequiredError(
            "You must agree to the terms before confirming the order", missing=missing
        )
