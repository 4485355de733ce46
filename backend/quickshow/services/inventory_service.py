"""
Seat inventory: the per-show seat -> holder map.

CONCURRENCY STRATEGY: Optimistic Locking on the show row
=========================================================

Problem:
  Two users select seat A1 at the same moment. Both read the seat map,
  both see A1 free, both write their holder into it. One hold is silently
  overwritten and the seat is sold twice.

Solution:
  Every write to `occupied_seats` is a conditional UPDATE:

    UPDATE shows SET occupied_seats = :new_map, version = version + 1
    WHERE id = :show_id AND version = :read_version

  If rows_affected == 0 another writer got in between our read and our
  write. The caller re-reads and re-checks availability, so a lost race
  turns into a clean "seats unavailable" instead of a double booking.

  `claim_seats` and `release_seats` are the only writers of the seat map.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.show import Show
from quickshow.core.errors import Conflict, SeatsUnavailable, ShowNotFound
from quickshow.core.logging import get_logger
from quickshow.core.metrics import claim_retries

logger = get_logger(__name__)


async def get_show(db: AsyncSession, show_id: int) -> Show:
    """Load a show, always refreshing it from the database."""
    result = await db.execute(
        select(Show)
        .where(Show.id == show_id)
        .execution_options(populate_existing=True)
    )
    show = result.scalar_one_or_none()
    if not show:
        raise ShowNotFound(show_id)
    return show


async def list_occupied_seats(db: AsyncSession, show_id: int) -> list[str]:
    show = await get_show(db, show_id)
    return list((show.occupied_seats or {}).keys())


async def claim_seats(db: AsyncSession, show: Show, seats: list[str], holder: str) -> bool:
    """
    Mark `seats` as held by `holder`, conditional on `show.version`.

    Raises SeatsUnavailable if the snapshot already has any of them taken.
    Returns False when the row changed since `show` was read.
    """
    occupied = dict(show.occupied_seats or {})
    taken = [seat for seat in seats if seat in occupied]
    if taken:
        logger.info("seats_unavailable", show_id=show.id, taken=taken)
        raise SeatsUnavailable(taken)

    for seat in seats:
        occupied[seat] = holder

    result = await db.execute(
        update(Show)
        .where(Show.id == show.id, Show.version == show.version)
        .values(occupied_seats=occupied, version=Show.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_seats(
    db: AsyncSession,
    show_id: int,
    seats: list[str],
    holder: str,
    max_attempts: int = 5,
) -> list[str]:
    """
    Free the seats in `seats` that are still held by `holder`.

    Seats that are already free, or that belong to someone else, are left
    alone, which makes a repeated release a no-op. Does not commit.
    """
    for attempt in range(1, max_attempts + 1):
        show = await get_show(db, show_id)
        occupied = dict(show.occupied_seats or {})
        released = [seat for seat in seats if occupied.get(seat) == holder]
        if not released:
            return []

        for seat in released:
            del occupied[seat]

        result = await db.execute(
            update(Show)
            .where(Show.id == show_id, Show.version == show.version)
            .values(occupied_seats=occupied, version=Show.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return released

        claim_retries.inc()
        logger.info("seat_release_retry", show_id=show_id, attempt=attempt, reason="version_conflict")

    raise Conflict(f"Could not release seats for show {show_id} due to concurrent updates")
