"""
Show scheduling: create a show and announce it.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.movie import Movie
from quickshow.models.show import Show
from quickshow.schemas.show import ShowCreate
from quickshow.core.errors import ValidationFailure
from quickshow.core.logging import get_logger
from quickshow.services import task_queue
from quickshow.services.notification_service import NEW_SHOW_TASK

logger = get_logger(__name__)


async def upsert_movie(db: AsyncSession, movie_id: str, title: str) -> Movie:
    movie = await db.get(Movie, movie_id)
    if movie is None:
        movie = Movie(id=movie_id, title=title)
        db.add(movie)
    else:
        movie.title = title
    await db.flush()
    return movie


async def create_show(db: AsyncSession, show_data: ShowCreate) -> Show:
    """Create a show with every seat free and queue the new-show announcement."""
    now = datetime.now(timezone.utc)
    if show_data.show_datetime <= now:
        raise ValidationFailure("Show time must be in the future")

    movie = await upsert_movie(db, show_data.movie_id, show_data.movie_title)

    show = Show(
        movie_id=movie.id,
        show_datetime=show_data.show_datetime,
        show_price=show_data.show_price,
        seat_rows=show_data.seat_rows,
        seats_per_row=show_data.seats_per_row,
        occupied_seats={},
        version=1,
    )
    db.add(show)
    await db.flush()

    await task_queue.schedule_task(
        db,
        NEW_SHOW_TASK,
        {"show_id": show.id, "movie_title": movie.title},
        run_at=now,
    )

    logger.info("show_created", show_id=show.id, movie_id=movie.id, starts_at=show.show_datetime.isoformat())
    return show
