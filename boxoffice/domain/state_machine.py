"""
Seat and order lifecycles.

Each machine is one transition table. Anything not listed is rejected.
"""

from enum import Enum
from typing import Dict, FrozenSet

from boxoffice.core.exceptions import InvalidStatusTransition


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    LOCKED = "locked"


class OrderStatus(str, Enum):
    TEMPORARY = "temporary"
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderMode(str, Enum):
    """How an order starts its life."""

    TEMPORARY = "temporary"  # anonymous hold
    PENDING = "pending"  # customer known, awaiting payment
    PAID = "paid"  # paid offline at the box office


class _StateMachine:
    _status_type: type
    _entity: str
    _ALLOWED_TRANSITIONS: Dict[Enum, FrozenSet[Enum]]

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, frozenset())

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        """
        Raises InvalidStatusTransition if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStatusTransition(
                from_status=from_status.value,
                to_status=to_status.value,
                entity=cls._entity,
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        cls._ensure_valid_status(status)
        return not cls._ALLOWED_TRANSITIONS.get(status)

    @classmethod
    def sources_of(cls, to_status) -> FrozenSet:
        """Statuses from which `to_status` can be reached."""
        cls._ensure_valid_status(to_status)
        return frozenset(
            source for source, targets in cls._ALLOWED_TRANSITIONS.items()
            if to_status in targets
        )

    @classmethod
    def _ensure_valid_status(cls, status) -> None:
        if not isinstance(status, cls._status_type):
            raise TypeError(
                f"Expected {cls._status_type.__name__}, got {type(status)}"
            )


class SeatStateMachine(_StateMachine):
    _status_type = SeatStatus
    _entity = "seat"

    _ALLOWED_TRANSITIONS = {
        SeatStatus.AVAILABLE: frozenset({SeatStatus.RESERVED, SeatStatus.LOCKED}),
        SeatStatus.RESERVED: frozenset({
            SeatStatus.AVAILABLE,
            SeatStatus.SOLD,
            SeatStatus.LOCKED,
        }),
        # Refunds and unlocks are out-of-band operations.
        SeatStatus.SOLD: frozenset(),
        SeatStatus.LOCKED: frozenset(),
    }


class OrderStateMachine(_StateMachine):
    _status_type = OrderStatus
    _entity = "order"

    _ALLOWED_TRANSITIONS = {
        OrderStatus.TEMPORARY: frozenset({OrderStatus.PENDING, OrderStatus.EXPIRED}),
        OrderStatus.PENDING: frozenset({
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
            OrderStatus.EXPIRED,
        }),
        OrderStatus.PAID: frozenset(),
        OrderStatus.CANCELLED: frozenset(),
        OrderStatus.EXPIRED: frozenset(),
    }

    # Statuses an order may be created in, per mode.
    INITIAL = {
        OrderMode.TEMPORARY: OrderStatus.TEMPORARY,
        OrderMode.PENDING: OrderStatus.PENDING,
        OrderMode.PAID: OrderStatus.PAID,
    }

    HOLDING = frozenset({OrderStatus.TEMPORARY, OrderStatus.PENDING})
