"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from quickshow.api.routes import bookings, payments, shows, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
api_router.include_router(shows.router)
api_router.include_router(users.router)
