"""Task activity and recurring tasks

Cards gain comments, assignees, time logs with a running timer, and
estimated/actual minutes. recurring_tasks is a new owned table: it
points at a template task on a board and is migrated guest → user
like every other owned kind.

Revision ID: 7b1e4d2c9f03
Revises: 3f2c9a1d7e40
Create Date: 2026-10-19 15:40:02.771930
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7b1e4d2c9f03'
down_revision: Union[str, None] = '3f2c9a1d7e40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

_TASK_LISTS = ("comments", "assignee_ids", "time_logs")


def upgrade() -> None:
    # ─── Task activity ───────────────────────────────────
    with op.batch_alter_table("tasks") as batch:
        for column in _TASK_LISTS:
            batch.add_column(
                sa.Column(column, JSONType, nullable=False, server_default=sa.text("'[]'"))
            )
        batch.add_column(sa.Column("active_timer", JSONType, nullable=True))
        batch.add_column(sa.Column("estimated_time", sa.Integer(), nullable=True))
        batch.add_column(
            sa.Column("actual_time", sa.Integer(), nullable=False, server_default="0")
        )

    # ─── Recurring tasks ─────────────────────────────────
    op.create_table(
        "recurring_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "board_id",
            sa.Uuid(),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "task_id",
            sa.Uuid(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("pattern", JSONType, nullable=False),
        sa.Column("next_due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_generated", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("guest_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "user_id IS NULL OR guest_id IS NULL",
            name="ck_recurring_tasks_single_owner",
        ),
    )
    op.create_index("idx_recurring_tasks_user", "recurring_tasks", ["user_id"])
    op.create_index("idx_recurring_tasks_guest", "recurring_tasks", ["guest_id"])


def downgrade() -> None:
    op.drop_table("recurring_tasks")
    with op.batch_alter_table("tasks") as batch:
        for column in ("actual_time", "estimated_time", "active_timer", *_TASK_LISTS):
            batch.drop_column(column)
