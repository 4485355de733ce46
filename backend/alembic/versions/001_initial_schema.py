"""Initial schema: users, movies, shows, bookings, scheduled_tasks.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users are mirrored from the identity provider, keyed by its subject id
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("image", sa.String(1024), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "movies",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "shows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("movie_id", sa.String(64), sa.ForeignKey("movies.id"), nullable=False),
        sa.Column("show_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("show_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("seat_rows", sa.String(26), nullable=False, server_default="ABCDEFGHIJ"),
        sa.Column("seats_per_row", sa.Integer(), nullable=False, server_default=sa.text("9")),
        sa.Column("occupied_seats", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("show_price >= 0", name="check_show_price_non_negative"),
        sa.CheckConstraint("seats_per_row > 0", name="check_seats_per_row_positive"),
    )
    op.create_index("ix_shows_id", "shows", ["id"])
    op.create_index("ix_shows_movie_id", "shows", ["movie_id"])
    # Reminder job scans a 10 minute window of start times every run
    op.create_index("ix_shows_show_datetime", "shows", ["show_datetime"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("show_id", sa.Integer(), sa.ForeignKey("shows.id"), nullable=False),
        sa.Column("booked_seats", sa.JSON(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payment_link", sa.String(2048), nullable=True),
        sa.Column("checkout_session_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_show_id", "bookings", ["show_id"])

    op.create_table(
        "scheduled_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_scheduled_tasks_id", "scheduled_tasks", ["id"])
    op.create_index("ix_scheduled_tasks_name", "scheduled_tasks", ["name"])
    # Worker poll: WHERE status = 'pending' AND run_at <= now() ORDER BY run_at
    op.create_index("ix_scheduled_tasks_status_run_at", "scheduled_tasks", ["status", "run_at"])


def downgrade() -> None:
    op.drop_table("scheduled_tasks")
    op.drop_table("bookings")
    op.drop_table("shows")
    op.drop_table("movies")
    op.drop_table("users")
