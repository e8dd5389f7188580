from boxoffice.domain.state_machine import (
    OrderMode,
    OrderStateMachine,
    OrderStatus,
    SeatStateMachine,
    SeatStatus,
    SessionStatus,
)

__all__ = [
    "OrderMode",
    "OrderStateMachine",
    "OrderStatus",
    "SeatStateMachine",
    "SeatStatus",
    "SessionStatus",
]
