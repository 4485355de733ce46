"""
Polling worker for the durable task queue.

One worker loop per process. Each poll claims a batch of due tasks (see
task_queue.claim_due_tasks) and runs them one by one, each in its own
session. Handler errors are logged and fed back to the queue for retry;
nothing a handler does can stop the loop.

Handlers that mutate state commit their own unit of work, then the worker
marks the task done in a second commit. A crash between the two re-runs
the handler once the lease expires, so every handler is idempotent.

Retry policy per task:
  - hold releases retry forever (capped backoff); a parked release would
    leave seats held by an unpaid booking with nothing to free them
  - periodic tasks that exhaust their attempts are parked, and their next
    regular run is queued at the same time
  - everything else is parked after TASK_MAX_ATTEMPTS runs
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quickshow.core.logging import get_logger
from quickshow.core.metrics import record_task_run
from quickshow.db.base import as_utc, utcnow
from quickshow.models.scheduled_task import ScheduledTask, STATUS_FAILED, STATUS_RUNNING
from quickshow.services import expiry_service, notification_service, payment_service, task_queue
from quickshow.services.container import Services

logger = get_logger(__name__)

Handler = Callable[[AsyncSession, Services, dict, datetime], Awaitable[Any]]


@dataclass(frozen=True)
class TaskSpec:
    handler: Handler
    # Periodic tasks enqueue their next run on completion
    interval: Optional[timedelta] = None
    retry_forever: bool = False


async def _release_unpaid_booking(db: AsyncSession, services: Services, payload: dict, now: datetime):
    return await expiry_service.release_unpaid_booking(db, services, int(payload["booking_id"]))


async def _send_booking_confirmation(db: AsyncSession, services: Services, payload: dict, now: datetime):
    return await notification_service.send_booking_confirmation(db, services, int(payload["booking_id"]))


async def _send_new_show_notification(db: AsyncSession, services: Services, payload: dict, now: datetime):
    return await notification_service.send_new_show_notification(db, services, payload["movie_title"])


async def _send_show_reminders(db: AsyncSession, services: Services, payload: dict, now: datetime):
    return await notification_service.send_show_reminders(db, services, now)


def build_task_registry(services: Services) -> dict[str, TaskSpec]:
    return {
        expiry_service.RELEASE_TASK: TaskSpec(_release_unpaid_booking, retry_forever=True),
        payment_service.CONFIRMATION_TASK: TaskSpec(_send_booking_confirmation),
        notification_service.NEW_SHOW_TASK: TaskSpec(_send_new_show_notification),
        notification_service.REMINDER_TASK: TaskSpec(
            _send_show_reminders,
            interval=timedelta(hours=services.settings.REMINDER_INTERVAL_HOURS),
        ),
    }


def next_aligned_run(now: datetime, interval: timedelta) -> datetime:
    """Next multiple of `interval` since midnight UTC, like a `0 */8 * * *` cron."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = now - midnight
    steps = elapsed // interval + 1
    return midnight + steps * interval


class TaskWorker:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        services: Services,
        registry: Optional[dict[str, TaskSpec]] = None,
    ):
        self.session_factory = session_factory
        self.services = services
        self.registry = registry if registry is not None else build_task_registry(services)
        self.settings = services.settings
        self._stopping = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None

    async def ensure_periodic_tasks(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        async with self.session_factory() as db:
            for name, spec in self.registry.items():
                if spec.interval is not None:
                    await task_queue.ensure_task(db, name, next_aligned_run(now, spec.interval))
            await db.commit()

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Claim and run every due task. Returns how many were claimed. Never raises.

        Without an explicit `now`, each task runs against a fresh clock so a
        slow batch does not keep working on leases that already ran out.
        """
        try:
            async with self.session_factory() as db:
                task_ids = await task_queue.claim_due_tasks(
                    db,
                    now=now or utcnow(),
                    lease_seconds=self.settings.TASK_LEASE_SECONDS,
                    limit=self.settings.TASK_BATCH_SIZE,
                )
        except SQLAlchemyError as e:
            logger.error("task_claim_failed", error=str(e))
            return 0

        for task_id in task_ids:
            with structlog.contextvars.bound_contextvars(task_id=task_id):
                await self._execute(task_id, now or utcnow())
        return len(task_ids)

    async def _execute(self, task_id: int, now: datetime) -> None:
        name = None
        attempts = None
        async with self.session_factory() as db:
            try:
                task = await db.get(ScheduledTask, task_id)
                if task is None:
                    return
                name, payload, run_at, attempts = task.name, dict(task.payload or {}), as_utc(task.run_at), task.attempts

                if task.status != STATUS_RUNNING or task.locked_until is None or as_utc(task.locked_until) <= now:
                    # Another worker may already have reclaimed it
                    logger.warning("task_lease_expired", task_name=name)
                    return

                spec = self.registry.get(name)
                if spec is None:
                    logger.error("task_unknown", task_name=name)
                    task.status = STATUS_FAILED
                    task.last_error = f"No handler registered for {name}"
                    await db.commit()
                    record_task_run(name, "failed")
                    return

                result = await spec.handler(db, self.services, payload, now)

                if not await task_queue.complete_task(db, task_id, attempts, now):
                    await db.rollback()
                    logger.warning("task_lease_lost", task_name=name)
                    return
                if spec.interval is not None:
                    next_run = run_at + spec.interval
                    while next_run <= now:
                        next_run += spec.interval
                    await task_queue.schedule_task(db, name, payload, next_run)
                await db.commit()
            except Exception as e:
                await self._record_failure(db, task_id, name, attempts, e, now)
                return

        record_task_run(name, "done")
        logger.info("task_completed", task_name=name, result=result)

    async def _record_failure(
        self,
        db: AsyncSession,
        task_id: int,
        name: Optional[str],
        attempts: Optional[int],
        error: Exception,
        now: datetime,
    ) -> None:
        logger.exception("task_failed", error=str(error))
        spec = self.registry.get(name) if name else None
        max_attempts = None if spec is not None and spec.retry_forever else self.settings.TASK_MAX_ATTEMPTS
        try:
            await db.rollback()
            status = await task_queue.fail_task(
                db,
                task_id,
                attempts,
                f"{type(error).__name__}: {error}",
                now,
                max_attempts=max_attempts,
                backoff_seconds=self.settings.TASK_RETRY_BACKOFF_SECONDS,
                max_backoff_seconds=self.settings.TASK_MAX_BACKOFF_SECONDS,
            )
            if status is None:
                logger.warning("task_lease_lost", task_name=name)
                await db.rollback()
                return
            if status == STATUS_FAILED and spec is not None and spec.interval is not None:
                next_run = next_aligned_run(now, spec.interval)
                await task_queue.schedule_task(db, name, {}, next_run)
                logger.warning("periodic_task_rearmed", task_name=name, run_at=next_run.isoformat())
            await db.commit()
        except SQLAlchemyError as e:
            # Lease expiry hands the task to the next poll
            logger.error("task_failure_not_recorded", error=str(e))
            return
        record_task_run(name or "unknown", "failed" if status == STATUS_FAILED else "retry")

    async def _ensure_periodic_tasks_logged(self) -> None:
        try:
            await self.ensure_periodic_tasks()
        except SQLAlchemyError as e:
            logger.error("periodic_task_setup_failed", error=str(e))

    async def run_forever(self) -> None:
        logger.info("task_worker_started", poll_interval=self.settings.TASK_POLL_INTERVAL_SECONDS)

        while not self._stopping.is_set():
            # Re-checked every idle poll so a lost periodic task comes back without a restart
            await self._ensure_periodic_tasks_logged()
            processed = await self.run_once()
            if processed:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.settings.TASK_POLL_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass
        logger.info("task_worker_stopped")

    def start(self) -> asyncio.Task:
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self.run_forever())
        return self._loop_task

    async def stop(self) -> None:
        self._stopping.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
