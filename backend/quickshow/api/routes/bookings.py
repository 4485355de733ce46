"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.api.dependencies import get_services
from quickshow.db.session import get_db
from quickshow.schemas.booking import (
    ReservationCreate,
    ReservationResponse,
    OccupiedSeatsResponse,
    BookingResponse,
)
from quickshow.services import booking_service, reservation_service
from quickshow.services.container import Services
from quickshow.core.security import get_current_user_id
from quickshow.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=ReservationResponse, response_model_exclude_none=True)
async def create_booking(
    reservation: ReservationCreate,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """
    Hold seats for a show and start checkout.

    Seats are claimed with an optimistic lock on the show, so two requests
    for the same seat cannot both succeed. The hold is released automatically
    if payment does not complete within the hold window.
    """
    booking = await reservation_service.reserve(
        db,
        services,
        user_id=user_id,
        show_id=reservation.show_id,
        selected_seats=reservation.selected_seats,
        origin=request.headers.get("origin"),
    )
    return ReservationResponse(success=True, url=booking.payment_link)


@router.get("/seats/{show_id}", response_model=OccupiedSeatsResponse)
async def get_occupied_seats(
    show_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Seats that are held or booked for a show."""
    seats = await reservation_service.list_occupied_seats(db, services, show_id)
    return OccupiedSeatsResponse(success=True, occupied_seats=seats)


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_service.get_user_bookings(db, user_id)
