"""
Identity sync: mirror user profiles pushed by the identity provider.

The provider is the source of truth; this table only exists so that
notifications have a name and an email address to work with.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.user import User
from quickshow.schemas.user import IdentityEvent, IdentityUser
from quickshow.core.errors import ValidationFailure
from quickshow.core.logging import get_logger

logger = get_logger(__name__)

USER_CREATED = "user.created"
USER_UPDATED = "user.updated"
USER_DELETED = "user.deleted"


def _profile(data: IdentityUser) -> dict:
    if not data.email_addresses:
        raise ValidationFailure(f"User {data.id} has no email address")
    name = " ".join(part for part in (data.first_name, data.last_name) if part)
    return {
        "email": data.email_addresses[0].email_address,
        "name": name,
        "image": data.image_url,
    }


async def upsert_user(db: AsyncSession, data: IdentityUser) -> User:
    profile = _profile(data)
    user = await db.get(User, data.id)
    if user is None:
        user = User(id=data.id, **profile)
        db.add(user)
    else:
        for field, value in profile.items():
            setattr(user, field, value)
    await db.flush()
    return user


async def delete_user(db: AsyncSession, user_id: str) -> bool:
    user = await db.get(User, user_id)
    if user is None:
        return False
    await db.delete(user)
    await db.flush()
    return True


async def apply_identity_event(db: AsyncSession, event: IdentityEvent) -> str:
    """Apply one provider webhook. Returns what happened, for the response body."""
    if event.type in (USER_CREATED, USER_UPDATED):
        user = await upsert_user(db, event.data)
        logger.info("user_synced", user_id=user.id, event_type=event.type)
        return "upserted"

    if event.type == USER_DELETED:
        deleted = await delete_user(db, event.data.id)
        logger.info("user_deleted", user_id=event.data.id, existed=deleted)
        return "deleted" if deleted else "ignored"

    logger.debug("identity_event_ignored", event_type=event.type)
    return "ignored"
