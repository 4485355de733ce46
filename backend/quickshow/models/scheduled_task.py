"""
Durable, time-indexed task queue row.

Workers claim a row by flipping its status with a conditional UPDATE and
hold it for a lease (`locked_until`). A worker that dies mid-task leaves the
lease to expire, after which another worker reclaims the row.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Index

from quickshow.db.base import Base, TimestampMixin

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_DONE = "done"
STATUS_FAILED = "failed"


class ScheduledTask(Base, TimestampMixin):
    __tablename__ = "scheduled_tasks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    run_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        # Poll query: WHERE status = 'pending' AND run_at <= now ORDER BY run_at
        Index("ix_scheduled_tasks_status_run_at", "status", "run_at"),
        Index("ix_scheduled_tasks_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledTask(id={self.id}, name={self.name}, status={self.status}, run_at={self.run_at})>"
