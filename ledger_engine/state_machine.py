"""
Ledger Engine - Status State Machines.

============================================================
PURPOSE
============================================================
Explicit transition tables for trades, subscriptions and
copy trades.

TRADE:

    PENDING ──────► EXECUTED ──────► CLOSED
       │               │
       └───────────────┴───────────► CANCELLED

SUBSCRIPTION:

    ACTIVE ──────► EXPIRED
       │
       └─────────► CANCELLED

COPY TRADE:

    PENDING ──────► EXECUTED
       │
       └──────────► FAILED

INVARIANTS:
- Terminal states are final
- A transition not listed is rejected, including the direct
  PENDING -> CLOSED shortcut
- The store applies each transition with a status-guarded
  UPDATE, so the table here is checked before the write and the
  row count is checked after it

============================================================
"""

import logging
from typing import Dict, Set, Union

from .errors import InvalidStateError
from .types import CopyTradeStatus, SubscriptionStatus, TradeStatus


logger = logging.getLogger(__name__)


Status = Union[TradeStatus, SubscriptionStatus, CopyTradeStatus]


# ============================================================
# STATE TRANSITION RULES
# ============================================================

TRADE_TRANSITIONS: Dict[TradeStatus, Set[TradeStatus]] = {
    TradeStatus.PENDING: {
        TradeStatus.EXECUTED,
        TradeStatus.CANCELLED,
    },
    TradeStatus.EXECUTED: {
        TradeStatus.CLOSED,
        TradeStatus.CANCELLED,
    },
    # Terminal states - no transitions out
    TradeStatus.CLOSED: set(),
    TradeStatus.CANCELLED: set(),
}

SUBSCRIPTION_TRANSITIONS: Dict[SubscriptionStatus, Set[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: {
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.CANCELLED,
    },
    SubscriptionStatus.EXPIRED: set(),
    SubscriptionStatus.CANCELLED: set(),
}

COPY_TRADE_TRANSITIONS: Dict[CopyTradeStatus, Set[CopyTradeStatus]] = {
    CopyTradeStatus.PENDING: {
        CopyTradeStatus.EXECUTED,
        CopyTradeStatus.FAILED,
    },
    CopyTradeStatus.EXECUTED: set(),
    CopyTradeStatus.FAILED: set(),
}

_TABLES = {
    TradeStatus: TRADE_TRANSITIONS,
    SubscriptionStatus: SUBSCRIPTION_TRANSITIONS,
    CopyTradeStatus: COPY_TRADE_TRANSITIONS,
}

# Error codes for rejected source states
_REJECTION_CODES = {
    TradeStatus.CLOSED: "ST_TRADE_CLOSED",
    TradeStatus.CANCELLED: "ST_TRADE_CANCELLED",
    TradeStatus.PENDING: "ST_TRADE_PENDING",
    SubscriptionStatus.EXPIRED: "ST_SUBSCRIPTION_ENDED",
    SubscriptionStatus.CANCELLED: "ST_SUBSCRIPTION_ENDED",
}

_REJECTION_MESSAGES = {
    TradeStatus.CLOSED: "Trade is already closed",
    TradeStatus.CANCELLED: "Trade is cancelled",
    TradeStatus.PENDING: "Trade has not been executed",
    SubscriptionStatus.EXPIRED: "Subscription has expired",
    SubscriptionStatus.CANCELLED: "Subscription is already cancelled",
}


# ============================================================
# STATE TRANSITION GUARD
# ============================================================

class TransitionGuard:
    """
    Guard for status transitions.

    Ensures transitions are valid and provides reason for denial.
    """

    @staticmethod
    def can_transition(from_state: Status, to_state: Status) -> tuple[bool, str]:
        """
        Check if transition is allowed.

        Unlike order updates, a ledger transition to the same state
        is never a no-op: closing a closed trade is a rejection.

        Returns:
            Tuple of (allowed, reason)
        """
        if type(from_state) is not type(to_state):
            return False, f"Cannot mix {type(from_state).__name__} and {type(to_state).__name__}"

        valid_targets = _TABLES[type(from_state)].get(from_state, set())

        if to_state in valid_targets:
            return True, "Valid transition"

        if from_state.is_terminal():
            return False, f"Cannot transition from terminal state {from_state.value}"

        return False, f"Invalid transition: {from_state.value} -> {to_state.value}"

    @staticmethod
    def ensure_transition(from_state: Status, to_state: Status, entity_id: int) -> None:
        """
        Raise if the transition is not allowed.

        Raises:
            InvalidStateError: with a code naming the rejected
                source state (closed and cancelled trades differ)
        """
        allowed, reason = TransitionGuard.can_transition(from_state, to_state)
        if allowed:
            return

        logger.warning(
            f"Rejected {type(from_state).__name__} {entity_id}: "
            f"{from_state.value} -> {to_state.value} ({reason})"
        )
        raise InvalidStateError(
            _REJECTION_MESSAGES.get(from_state, reason),
            current_state=from_state.value,
            code=_REJECTION_CODES.get(from_state, "ST_INVALID_TRANSITION"),
            entity_id=entity_id,
            requested_state=to_state.value,
        )


__all__ = [
    "TRADE_TRANSITIONS",
    "SUBSCRIPTION_TRANSITIONS",
    "COPY_TRADE_TRANSITIONS",
    "TransitionGuard",
]
