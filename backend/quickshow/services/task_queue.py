"""
Durable deferred-task queue backed by the `scheduled_tasks` table.

Tasks are inserted in the same transaction as the state change that needs
them (a reservation schedules its own expiry), so a committed booking always
has its expiry job and a rolled-back one never does.

Claiming uses the same conditional-UPDATE idea as the seat map: a worker owns
a task only if it flipped the row from the exact (status, attempts) it read.
A claimed task carries a lease; if the worker dies, the lease runs out and
the task becomes claimable again.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.scheduled_task import (
    ScheduledTask,
    STATUS_PENDING,
    STATUS_RUNNING,
    STATUS_DONE,
    STATUS_FAILED,
)
from quickshow.core.logging import get_logger

logger = get_logger(__name__)


async def schedule_task(
    db: AsyncSession,
    name: str,
    payload: dict,
    run_at: datetime,
) -> ScheduledTask:
    """Queue a task in the caller's transaction. Does not commit."""
    task = ScheduledTask(name=name, payload=payload, run_at=run_at, status=STATUS_PENDING, attempts=0)
    db.add(task)
    await db.flush()
    logger.info("task_scheduled", task_id=task.id, task_name=name, run_at=run_at.isoformat())
    return task


async def ensure_task(
    db: AsyncSession,
    name: str,
    run_at: datetime,
    payload: Optional[dict] = None,
) -> Optional[ScheduledTask]:
    """Schedule `name` unless a pending or running instance already exists."""
    result = await db.execute(
        select(ScheduledTask.id)
        .where(
            ScheduledTask.name == name,
            ScheduledTask.status.in_([STATUS_PENDING, STATUS_RUNNING]),
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        return None
    return await schedule_task(db, name, payload or {}, run_at)


async def claim_due_tasks(
    db: AsyncSession,
    now: datetime,
    lease_seconds: int,
    limit: int = 20,
) -> list[int]:
    """
    Claim up to `limit` due tasks and commit the claim.

    Due means pending with run_at <= now, or running with an expired lease.
    Returns the ids this caller now owns.
    """
    result = await db.execute(
        select(ScheduledTask.id, ScheduledTask.status, ScheduledTask.attempts)
        .where(
            or_(
                and_(ScheduledTask.status == STATUS_PENDING, ScheduledTask.run_at <= now),
                and_(ScheduledTask.status == STATUS_RUNNING, ScheduledTask.locked_until < now),
            )
        )
        .order_by(ScheduledTask.run_at.asc())
        .limit(limit)
    )
    candidates = result.all()

    claimed = []
    locked_until = now + timedelta(seconds=lease_seconds)
    for task_id, status, attempts in candidates:
        update_result = await db.execute(
            update(ScheduledTask)
            .where(
                ScheduledTask.id == task_id,
                ScheduledTask.status == status,
                ScheduledTask.attempts == attempts,
            )
            .values(
                status=STATUS_RUNNING,
                attempts=ScheduledTask.attempts + 1,
                locked_until=locked_until,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount == 1:
            claimed.append(task_id)
            if status == STATUS_RUNNING:
                logger.warning("task_lease_reclaimed", task_id=task_id, attempts=attempts)

    await db.commit()
    return claimed


async def complete_task(db: AsyncSession, task_id: int, attempts: int, now: datetime) -> bool:
    """
    Mark a claimed task done. Only succeeds while the caller still owns the
    claim (status running, attempts unchanged); returns False if the lease
    was lost to another worker.
    """
    result = await db.execute(
        update(ScheduledTask)
        .where(
            ScheduledTask.id == task_id,
            ScheduledTask.status == STATUS_RUNNING,
            ScheduledTask.attempts == attempts,
        )
        .values(status=STATUS_DONE, locked_until=None, last_error=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def fail_task(
    db: AsyncSession,
    task_id: int,
    attempts: int,
    error: str,
    now: datetime,
    max_attempts: Optional[int],
    backoff_seconds: int,
    max_backoff_seconds: Optional[int] = None,
) -> Optional[str]:
    """
    Record a failed run. Reschedules with linear backoff (capped at
    `max_backoff_seconds`) until `max_attempts` runs have been made, then
    parks the task as failed. `max_attempts=None` retries forever.

    Returns the new status, or None if the caller no longer owns the claim.
    """
    task = await db.get(ScheduledTask, task_id, populate_existing=True)
    if task is None or task.status != STATUS_RUNNING or task.attempts != attempts:
        return None

    if max_attempts is not None and task.attempts >= max_attempts:
        task.status = STATUS_FAILED
    else:
        delay = backoff_seconds * task.attempts
        if max_backoff_seconds is not None:
            delay = min(delay, max_backoff_seconds)
        task.status = STATUS_PENDING
        task.run_at = now + timedelta(seconds=delay)
    task.locked_until = None
    task.last_error = error[:2000]
    task.updated_at = now
    await db.flush()
    return task.status
