from boxoffice.schemas.venue import (
    HallCreate, HallLayout, HallResponse, PriceSchemeCreate, PriceSchemeResponse,
)
from boxoffice.schemas.session import (
    SessionCreate, SessionResponse, SeatResponse, ZoneResponse, SeatMapResponse,
    SessionLockResponse, LockRunResponse,
)
from boxoffice.schemas.order import (
    CustomerInfo, OrderCreate, OrderResponse, OrderListResponse, OrderUpgrade,
    OrderPay, OrderStatusUpdate, OrderStatusResponse, CleanupResponse,
)

__all__ = [
    "HallCreate", "HallLayout", "HallResponse", "PriceSchemeCreate", "PriceSchemeResponse",
    "SessionCreate", "SessionResponse", "SeatResponse", "ZoneResponse", "SeatMapResponse",
    "SessionLockResponse", "LockRunResponse",
    "CustomerInfo", "OrderCreate", "OrderResponse", "OrderListResponse", "OrderUpgrade",
    "OrderPay", "OrderStatusUpdate", "OrderStatusResponse", "CleanupResponse",
]
