"""
Error taxonomy for the booking core.

Services raise these; the API layer turns every one of them into a
uniform ``{"success": false, "message": ...}`` body and the task worker
logs them. ``status_code`` is only consulted at the HTTP edge.
"""


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFound(BookingError):
    status_code = 404


class ShowNotFound(NotFound):
    def __init__(self, show_id) -> None:
        super().__init__(f"Show {show_id} not found")


class BookingNotFound(NotFound):
    def __init__(self, booking_id) -> None:
        super().__init__(f"Booking {booking_id} not found")


class Conflict(BookingError):
    status_code = 409


class SeatsUnavailable(Conflict):
    def __init__(self, seats: list[str] | None = None) -> None:
        super().__init__("Selected Seats are not available")
        self.seats = seats or []


class UpstreamFailure(BookingError):
    status_code = 502


class ValidationFailure(BookingError):
    status_code = 422


class Unauthorized(BookingError):
    status_code = 403
