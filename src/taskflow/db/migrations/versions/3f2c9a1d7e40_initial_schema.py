"""Initial schema: users, kanban, scrum, page header, audit log

Every per-identity table gets the same ownership columns: user_id
(FK users) and guest_id, with a check constraint that at most one is
set and an index on each. Singleton tables (page_headers,
scrum_settings) are also unique on both.

Revision ID: 3f2c9a1d7e40
Revises:
Create Date: 2026-10-19 09:12:44.104512
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f2c9a1d7e40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _owned(table: str, *columns, unique: bool = False):
    """Create an owned table: id, ownership columns, timestamps, checks."""
    constraints = [
        sa.CheckConstraint(
            "user_id IS NULL OR guest_id IS NULL",
            name=f"ck_{table}_single_owner",
        ),
    ]
    if unique:
        constraints += [
            sa.UniqueConstraint("user_id", name=f"uq_{table}_user"),
            sa.UniqueConstraint("guest_id", name=f"uq_{table}_guest"),
        ]
    op.create_table(
        table,
        sa.Column("id", sa.Uuid(), primary_key=True),
        *columns,
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("guest_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        *constraints,
    )
    op.create_index(f"idx_{table}_user", table, ["user_id"])
    op.create_index(f"idx_{table}_guest", table, ["guest_id"])


def upgrade() -> None:
    # ─── Users ───────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ─── Kanban ──────────────────────────────────────────
    _owned(
        "boards",
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
    )
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "board_id",
            sa.Uuid(),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("show_gradient", sa.Boolean(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("checklist", JSONType, nullable=False),
        sa.Column("tags", JSONType, nullable=False),
        sa.Column("dependencies", JSONType, nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_tasks_board_order", "tasks", ["board_id", "order"])

    _owned(
        "page_headers",
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("subtitle", sa.Text(), nullable=False),
        unique=True,
    )

    # ─── Scrum ───────────────────────────────────────────
    _owned(
        "sprints",
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("commitment", sa.Integer(), nullable=False),
        sa.Column("velocity", sa.Integer(), nullable=False),
    )
    _owned(
        "epics",
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_date", sa.DateTime(timezone=True), nullable=True),
    )
    _owned(
        "team_members",
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(50), nullable=True),
        sa.Column("avatar", sa.Text(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("availability", sa.Integer(), nullable=False),
    )
    _owned(
        "user_stories",
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("acceptance_criteria", JSONType, nullable=False),
        sa.Column("story_points", sa.Integer(), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column(
            "sprint_id",
            sa.Uuid(),
            sa.ForeignKey("sprints.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "epic_id",
            sa.Uuid(),
            sa.ForeignKey("epics.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "assignee_id",
            sa.Uuid(),
            sa.ForeignKey("team_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("labels", JSONType, nullable=False),
    )
    _owned(
        "scrum_tasks",
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "story_id",
            sa.Uuid(),
            sa.ForeignKey("user_stories.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "assignee_id",
            sa.Uuid(),
            sa.ForeignKey("team_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("labels", JSONType, nullable=False),
    )

    def _sprint_fk():
        return sa.Column(
            "sprint_id",
            sa.Uuid(),
            sa.ForeignKey("sprints.id", ondelete="CASCADE"),
            nullable=False,
        )

    _owned(
        "daily_standups",
        _sprint_fk(),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updates", JSONType, nullable=False),
    )
    _owned(
        "retrospectives",
        _sprint_fk(),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("went_well", JSONType, nullable=False),
        sa.Column("improve", JSONType, nullable=False),
        sa.Column("action_items", JSONType, nullable=False),
    )
    _owned(
        "sprint_reviews",
        _sprint_fk(),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed", JSONType, nullable=False),
        sa.Column("demos", JSONType, nullable=False),
        sa.Column("feedback", JSONType, nullable=False),
    )
    _owned(
        "scrum_settings",
        sa.Column("default_sprint_duration", sa.Integer(), nullable=False),
        sa.Column("story_point_scale", JSONType, nullable=False),
        sa.Column("working_days", JSONType, nullable=False),
        sa.Column("daily_capacity", sa.Integer(), nullable=False),
        unique=True,
    )

    # ─── Audit log ───────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stream_id", sa.String(200), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("data", JSONType, nullable=False),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_events_stream", "events", ["stream_id", "id"])
    op.create_index("idx_events_type", "events", ["type"])


def downgrade() -> None:
    for table in (
        "events",
        "scrum_settings",
        "sprint_reviews",
        "retrospectives",
        "daily_standups",
        "scrum_tasks",
        "user_stories",
        "team_members",
        "epics",
        "sprints",
        "page_headers",
        "tasks",
        "boards",
        "users",
    ):
        op.drop_table(table)
