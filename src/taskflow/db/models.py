"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic compares these models to the live DB.

Key concepts:
- UUID primary keys (ids are handed to the browser, never sequential)
- Every owned row carries user_id XOR guest_id (see OwnedMixin)
- JSON columns become JSONB on PostgreSQL and plain JSON elsewhere
- Timestamps default in Python so freshly-created rows are fully loaded
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
    relationship,
)

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands timestamps back naive)."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Users + ownership
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A registered account. Guests have no row here — only a cookie."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class OwnedMixin:
    """Ownership columns shared by every per-identity table.

    A row belongs to exactly one identity: a registered user (user_id)
    or an anonymous guest (guest_id). The check constraint forbids both
    being set; the only transition allowed afterwards is guest → user
    during migration.

    Set ``__owner_unique__ = True`` for singleton kinds (one row per
    identity), which adds unique constraints on both columns.
    """

    __owner_unique__ = False

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    guest_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @declared_attr.directive
    def __table_args__(cls):
        name = cls.__tablename__
        args = [
            CheckConstraint(
                "user_id IS NULL OR guest_id IS NULL",
                name=f"ck_{name}_single_owner",
            ),
            Index(f"idx_{name}_user", "user_id"),
            Index(f"idx_{name}_guest", "guest_id"),
        ]
        if cls.__owner_unique__:
            args.append(UniqueConstraint("user_id", name=f"uq_{name}_user"))
            args.append(UniqueConstraint("guest_id", name=f"uq_{name}_guest"))
        return tuple(args)


# ══════════════════════════════════════════════════════════════
# Kanban: boards, tasks, page header
# ══════════════════════════════════════════════════════════════


class Board(OwnedMixin, Base):
    """A kanban board. Owns its tasks; deleting a board deletes them."""

    __tablename__ = "boards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3b82f6")
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tasks: Mapped[list["Task"]] = relationship(
        back_populates="board",
        order_by="Task.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Task(Base):
    """A card on a board.

    Tasks have no ownership columns of their own — they are owned
    through their board, so migrating a board carries its tasks along.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_board_order", "board_id", "order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    show_gradient: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    checklist: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    dependencies: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    comments: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    assignee_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    time_logs: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    active_timer: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    estimated_time: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )  # minutes
    actual_time: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )  # minutes, sum of time_logs
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    board: Mapped["Board"] = relationship(back_populates="tasks")


class PageHeader(OwnedMixin, Base):
    """Editable title above the board list. One per identity."""

    __tablename__ = "page_headers"
    __owner_unique__ = True

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="Your Boards")
    subtitle: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="Organize and manage all your projects in one place",
    )


class RecurringTask(OwnedMixin, Base):
    """A schedule that copies a template task onto its board when due.

    ``pattern`` holds frequency (daily, weekly, monthly, yearly, custom),
    interval, days_of_week (0 = Sunday), day_of_month and end_date.
    """

    __tablename__ = "recurring_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    pattern: Mapped[dict] = mapped_column(JSONType, nullable=False)
    next_due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_generated: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    board: Mapped["Board"] = relationship()
    task: Mapped["Task"] = relationship()


# ══════════════════════════════════════════════════════════════
# Scrum
# ══════════════════════════════════════════════════════════════


class Sprint(OwnedMixin, Base):
    """A time-boxed iteration. Standups, reviews and retros hang off it."""

    __tablename__ = "sprints"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    goal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="planning"
    )  # planning, active, completed, cancelled
    commitment: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    velocity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Epic(OwnedMixin, Base):
    __tablename__ = "epics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#8b5cf6")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    target_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class TeamMember(OwnedMixin, Base):
    """A person on the Scrum team (not a login — just planning data)."""

    __tablename__ = "team_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    availability: Mapped[int] = mapped_column(Integer, nullable=False, default=100)


class UserStory(OwnedMixin, Base):
    __tablename__ = "user_stories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    acceptance_criteria: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    story_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="backlog")
    sprint_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True
    )
    epic_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("epics.id", ondelete="SET NULL"), nullable=True
    )
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("team_members.id", ondelete="SET NULL"), nullable=True
    )
    labels: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class ScrumTask(OwnedMixin, Base):
    """A sub-task of a story. Separate from kanban tasks."""

    __tablename__ = "scrum_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    story_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("user_stories.id", ondelete="CASCADE"), nullable=True
    )
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("team_members.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="todo")
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    labels: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class DailyStandup(OwnedMixin, Base):
    __tablename__ = "daily_standups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sprint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updates: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class Retrospective(OwnedMixin, Base):
    __tablename__ = "retrospectives"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sprint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    went_well: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    improve: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    action_items: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class SprintReview(OwnedMixin, Base):
    __tablename__ = "sprint_reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    sprint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    demos: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    feedback: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class ScrumSettings(OwnedMixin, Base):
    """Per-identity Scrum preferences. One per identity, created on first read."""

    __tablename__ = "scrum_settings"
    __owner_unique__ = True

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    default_sprint_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2
    )  # weeks
    story_point_scale: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=lambda: [1, 2, 3, 5, 8, 13, 21]
    )
    working_days: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=lambda: [1, 2, 3, 4, 5]
    )
    daily_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=6)


# ══════════════════════════════════════════════════════════════
# Audit log
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Append-only audit log of ownership-relevant changes.

    stream_id examples: "board:<uuid>", "guest:<guest id>", "user:<uuid>"
    type examples: "board.created", "guest.migrated"
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    meta: Mapped[dict] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )  # actor
    # Python attr is "meta" because "metadata" is reserved by SQLAlchemy.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


# Every kind that carries user_id/guest_id, in migration order.
OWNED_MODELS: tuple[type[OwnedMixin], ...] = (
    Board,
    RecurringTask,
    PageHeader,
    Sprint,
    Epic,
    TeamMember,
    UserStory,
    ScrumTask,
    DailyStandup,
    Retrospective,
    SprintReview,
    ScrumSettings,
)

SINGLETON_MODELS: tuple[type[OwnedMixin], ...] = (PageHeader, ScrumSettings)
