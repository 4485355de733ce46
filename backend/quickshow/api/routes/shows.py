"""
Show scheduling endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.api.dependencies import get_admin_user_id
from quickshow.db.session import get_db
from quickshow.schemas.show import ShowCreate, ShowResponse
from quickshow.services.show_service import create_show

router = APIRouter(prefix="/shows", tags=["Shows"])


@router.post("/", response_model=ShowResponse, status_code=status.HTTP_201_CREATED)
async def create_show_endpoint(
    show_data: ShowCreate,
    admin_id: str = Depends(get_admin_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Schedule a show. Every registered user is notified in the background."""
    return await create_show(db, show_data)
