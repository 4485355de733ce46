"""
Request-scoped access to the process-wide service handles.
"""

from fastapi import Depends, Request

from quickshow.core.config import get_settings
from quickshow.core.errors import Unauthorized
from quickshow.core.security import get_current_user_id
from quickshow.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_admin_user_id(user_id: str = Depends(get_current_user_id)) -> str:
    if user_id not in get_settings().ADMIN_USER_IDS:
        raise Unauthorized("Admin access required")
    return user_id
