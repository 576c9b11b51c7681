"""Pydantic schemas for the Scrum module.

Every kind follows the same split:
- XCreate: POST body (required fields enforced)
- XUpdate: PATCH body, all optional, only fields present are applied
- XRead: what the API returns

ScrumImport is the body of POST /scrum/import: the browser's local
collections, where items still carry client-side string ids.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from taskflow.schemas.base import ReadModel, WireModel


class _Owned(ReadModel):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# ─── Sprints ─────────────────────────────────────────────

SPRINT_STATUS = r"^(planning|active|completed|cancelled)$"


class SprintCreate(WireModel):
    name: str = Field(..., min_length=1, max_length=200)
    goal: Optional[str] = None
    start_date: datetime
    end_date: datetime
    status: str = Field(default="planning", pattern=SPRINT_STATUS)
    commitment: int = Field(default=0, ge=0)
    velocity: int = Field(default=0, ge=0)


class SprintUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    goal: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[str] = Field(None, pattern=SPRINT_STATUS)
    commitment: Optional[int] = Field(None, ge=0)
    velocity: Optional[int] = Field(None, ge=0)


class SprintRead(_Owned):
    name: str
    goal: Optional[str]
    start_date: datetime
    end_date: datetime
    status: str
    commitment: int
    velocity: int


# ─── Epics ───────────────────────────────────────────────

class EpicCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    color: str = Field(default="#8b5cf6", max_length=20)
    status: str = Field(default="active", max_length=20)
    progress: int = Field(default=0, ge=0, le=100)
    start_date: Optional[datetime] = None
    target_date: Optional[datetime] = None


class EpicUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    status: Optional[str] = Field(None, max_length=20)
    progress: Optional[int] = Field(None, ge=0, le=100)
    start_date: Optional[datetime] = None
    target_date: Optional[datetime] = None


class EpicRead(_Owned):
    title: str
    description: Optional[str]
    color: str
    status: str
    progress: int
    start_date: Optional[datetime]
    target_date: Optional[datetime]


# ─── User stories ────────────────────────────────────────

class StoryCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    acceptance_criteria: list[str] = Field(default_factory=list)
    story_points: Optional[int] = Field(None, ge=0)
    priority: str = Field(default="medium", max_length=20)
    status: str = Field(default="backlog", max_length=20)
    sprint_id: Optional[uuid.UUID] = None
    epic_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    labels: list[str] = Field(default_factory=list)


class StoryUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    acceptance_criteria: Optional[list[str]] = None
    story_points: Optional[int] = Field(None, ge=0)
    priority: Optional[str] = Field(None, max_length=20)
    status: Optional[str] = Field(None, max_length=20)
    sprint_id: Optional[uuid.UUID] = None
    epic_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    labels: Optional[list[str]] = None


class StoryRead(_Owned):
    title: str
    description: Optional[str]
    acceptance_criteria: list[str]
    story_points: Optional[int]
    priority: str
    status: str
    sprint_id: Optional[uuid.UUID]
    epic_id: Optional[uuid.UUID]
    assignee_id: Optional[uuid.UUID]
    labels: list[str]


# ─── Scrum tasks ─────────────────────────────────────────

class ScrumTaskCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    story_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    status: str = Field(default="todo", max_length=20)
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    labels: list[str] = Field(default_factory=list)


class ScrumTaskUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    story_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    status: Optional[str] = Field(None, max_length=20)
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    labels: Optional[list[str]] = None


class ScrumTaskRead(_Owned):
    title: str
    description: Optional[str]
    story_id: Optional[uuid.UUID]
    assignee_id: Optional[uuid.UUID]
    status: str
    estimated_hours: Optional[float]
    actual_hours: Optional[float]
    labels: list[str]


# ─── Team ────────────────────────────────────────────────

class MemberCreate(WireModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = Field(None, max_length=50)
    avatar: Optional[str] = None
    capacity: int = Field(default=8, ge=0)
    availability: int = Field(default=100, ge=0, le=100)


class MemberUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = Field(None, max_length=50)
    avatar: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    availability: Optional[int] = Field(None, ge=0, le=100)


class MemberRead(_Owned):
    name: str
    email: Optional[str]
    role: Optional[str]
    avatar: Optional[str]
    capacity: int
    availability: int


# ─── Ceremonies ──────────────────────────────────────────

class StandupCreate(WireModel):
    sprint_id: uuid.UUID
    date: datetime
    updates: list[dict] = Field(default_factory=list)


class StandupUpdate(WireModel):
    date: Optional[datetime] = None
    updates: Optional[list[dict]] = None


class StandupRead(_Owned):
    sprint_id: uuid.UUID
    date: datetime
    updates: list[dict]


class ReviewCreate(WireModel):
    sprint_id: uuid.UUID
    date: datetime
    completed: list = Field(default_factory=list)
    demos: list = Field(default_factory=list)
    feedback: list = Field(default_factory=list)


class ReviewUpdate(WireModel):
    date: Optional[datetime] = None
    completed: Optional[list] = None
    demos: Optional[list] = None
    feedback: Optional[list] = None


class ReviewRead(_Owned):
    sprint_id: uuid.UUID
    date: datetime
    completed: list
    demos: list
    feedback: list


class RetrospectiveCreate(WireModel):
    sprint_id: uuid.UUID
    date: Optional[datetime] = None
    went_well: list = Field(default_factory=list)
    improve: list = Field(default_factory=list)
    action_items: list = Field(default_factory=list)


class RetrospectiveUpdate(WireModel):
    date: Optional[datetime] = None
    went_well: Optional[list] = None
    improve: Optional[list] = None
    action_items: Optional[list] = None


class RetrospectiveRead(_Owned):
    sprint_id: uuid.UUID
    date: datetime
    went_well: list
    improve: list
    action_items: list


# ─── Settings ────────────────────────────────────────────

class ScrumSettingsUpdate(WireModel):
    default_sprint_duration: Optional[int] = Field(None, ge=1, le=8)
    story_point_scale: Optional[list[int]] = None
    working_days: Optional[list[int]] = None
    daily_capacity: Optional[int] = Field(None, ge=0, le=24)


class ScrumSettingsRead(ReadModel):
    id: uuid.UUID
    default_sprint_duration: int
    story_point_scale: list[int]
    working_days: list[int]
    daily_capacity: int


# ─── Import ──────────────────────────────────────────────
# Import items keep the client's string ids, references included; the
# service remaps them onto the rows it creates.

class SprintImport(SprintCreate):
    id: Optional[str] = None


class EpicImport(EpicCreate):
    id: Optional[str] = None


class MemberImport(MemberCreate):
    id: Optional[str] = None


class StoryImport(StoryCreate):
    id: Optional[str] = None
    sprint_id: Optional[str] = None
    epic_id: Optional[str] = None
    assignee_id: Optional[str] = None


class ScrumTaskImport(ScrumTaskCreate):
    id: Optional[str] = None
    story_id: Optional[str] = None
    assignee_id: Optional[str] = None


class StandupImport(StandupCreate):
    id: Optional[str] = None
    sprint_id: Optional[str] = None


class ReviewImport(ReviewCreate):
    id: Optional[str] = None
    sprint_id: Optional[str] = None


class RetrospectiveImport(RetrospectiveCreate):
    id: Optional[str] = None
    sprint_id: Optional[str] = None


class ScrumImport(WireModel):
    sprints: list[SprintImport] = Field(default_factory=list)
    epics: list[EpicImport] = Field(default_factory=list)
    members: list[MemberImport] = Field(default_factory=list)
    stories: list[StoryImport] = Field(default_factory=list)
    tasks: list[ScrumTaskImport] = Field(default_factory=list)
    standups: list[StandupImport] = Field(default_factory=list)
    reviews: list[ReviewImport] = Field(default_factory=list)
    retrospectives: list[RetrospectiveImport] = Field(default_factory=list)
    settings: Optional[ScrumSettingsUpdate] = None
