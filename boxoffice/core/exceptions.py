"""
Domain exceptions raised at the booking API boundary.

Every error carries a stable code and the HTTP status the API maps it to.
Services raise them; background workers catch them per item.
"""

from typing import Any, Dict, Optional


class BoxOfficeError(Exception):
    """Base exception for the box office service"""

    code = "BOX_OFFICE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class SeatNotFound(BoxOfficeError):
    code = "SEAT_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: int, seat_ids):
        self.seat_ids = list(seat_ids)
        super().__init__(
            f"Seats not found in session {session_id}: {', '.join(self.seat_ids)}",
            details={"session_id": session_id, "seat_ids": self.seat_ids},
        )


class SeatUnavailable(BoxOfficeError):
    code = "SEAT_UNAVAILABLE"
    status_code = 409

    def __init__(self, session_id: int, seat_ids, reason: str = "not available"):
        self.seat_ids = list(seat_ids)
        super().__init__(
            f"Seats {reason} in session {session_id}: {', '.join(self.seat_ids)}",
            details={"session_id": session_id, "seat_ids": self.seat_ids},
        )


class ReservationConflict(SeatUnavailable):
    """A conditional seat write touched fewer rows than it validated.

    Another transaction changed the seats between the read and the write.
    Callers may retry; the retry's validation reports the final state.
    """


class ReservationExpired(BoxOfficeError):
    code = "RESERVATION_EXPIRED"
    status_code = 409

    def __init__(self, message: str = "Reservation has expired", details: Optional[Dict] = None):
        super().__init__(message, details=details)


class OrderNotFound(BoxOfficeError):
    code = "ORDER_NOT_FOUND"
    status_code = 404

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})


class InvalidStatusTransition(BoxOfficeError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, entity: str = "order"):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Illegal {entity} status transition: {from_status} -> {to_status}",
            details={"from": from_status, "to": to_status},
        )


class PromoCodeInvalid(BoxOfficeError):
    code = "PROMO_CODE_INVALID"
    status_code = 400

    def __init__(self, code: str, reason: str):
        self.reason = reason
        super().__init__(f"Promo code {code!r} rejected: {reason}", details={"promo_code": code})


class SessionNotFound(BoxOfficeError):
    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: int):
        super().__init__(f"Session {session_id} not found", details={"session_id": session_id})


class HallNotFound(BoxOfficeError):
    code = "HALL_NOT_FOUND"
    status_code = 404

    def __init__(self, hall_id: int):
        super().__init__(f"Hall {hall_id} not found", details={"hall_id": hall_id})


class PriceSchemeNotFound(BoxOfficeError):
    code = "PRICE_SCHEME_NOT_FOUND"
    status_code = 404

    def __init__(self, price_scheme_id: int):
        super().__init__(
            f"Price scheme {price_scheme_id} not found",
            details={"price_scheme_id": price_scheme_id},
        )


class BookingValidationError(BoxOfficeError):
    code = "VALIDATION_ERROR"
    status_code = 422
