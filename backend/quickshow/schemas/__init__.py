from quickshow.schemas.booking import ReservationCreate, ReservationResponse, OccupiedSeatsResponse, BookingResponse
from quickshow.schemas.show import ShowCreate, ShowResponse
from quickshow.schemas.user import IdentityEvent, IdentityUser, IdentityEventResponse

__all__ = [
    "ReservationCreate", "ReservationResponse", "OccupiedSeatsResponse", "BookingResponse",
    "ShowCreate", "ShowResponse",
    "IdentityEvent", "IdentityUser", "IdentityEventResponse",
]
