"""
Identity-provider webhook for user profile sync.
"""

import hmac

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.core.config import get_settings
from quickshow.core.errors import Unauthorized
from quickshow.db.session import get_db
from quickshow.schemas.user import IdentityEvent, IdentityEventResponse
from quickshow.services.user_service import apply_identity_event

router = APIRouter(prefix="/users", tags=["Users"])


def verify_webhook_secret(x_webhook_secret: str = Header(default="")) -> None:
    expected = get_settings().IDENTITY_WEBHOOK_SECRET
    if not expected or not hmac.compare_digest(x_webhook_secret, expected):
        raise Unauthorized("Invalid webhook secret")


@router.post("/webhook", response_model=IdentityEventResponse, dependencies=[Depends(verify_webhook_secret)])
async def identity_webhook(event: IdentityEvent, db: AsyncSession = Depends(get_db)):
    """Apply user.created / user.updated / user.deleted from the identity provider."""
    result = await apply_identity_event(db, event)
    return IdentityEventResponse(result=result)
