"""Pydantic schemas for kanban boards, their tasks, and reorder batches.

- BoardCreate / BoardUpdate: POST and PATCH bodies
- TaskCreate / TaskUpdate: card bodies (update is partial, unset fields untouched)
- BoardReorder / TaskReorder: drag-and-drop position batches
- Comment / TimeLog / ActiveTimer: entries kept in a task's JSON columns
- CommentCreate, TimeRequest, AssigneeAdd: task activity bodies
- *Read: what the API returns
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, model_validator

from taskflow.schemas.base import ReadModel, WireModel

PRIORITY_PATTERN = r"^(low|medium|high|urgent)$"


# ─── Tasks ───────────────────────────────────────────────

class ChecklistItem(WireModel):
    id: Optional[str] = None
    text: str
    completed: bool = False


class TaskCreate(WireModel):
    text: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    show_gradient: bool = True
    due_date: Optional[datetime] = None
    progress: int = Field(default=0, ge=0, le=100)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class TaskUpdate(WireModel):
    """Partial update — only fields present in the body are applied.

    ``subtasks`` is accepted as an older name for ``checklist``.
    """

    text: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    show_gradient: Optional[bool] = None
    completed: Optional[bool] = None
    due_date: Optional[datetime] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    checklist: Optional[list[ChecklistItem]] = None
    subtasks: Optional[list[ChecklistItem]] = None
    tags: Optional[list[str]] = None
    dependencies: Optional[list[str]] = None
    board_id: Optional[uuid.UUID] = None
    order: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _subtasks_are_checklist(self):
        if self.subtasks is not None and self.checklist is None:
            self.checklist = self.subtasks
        return self

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True, exclude={"subtasks"})
        if self.subtasks is not None and "checklist" not in data:
            data["checklist"] = self.model_dump(include={"checklist"})["checklist"]
        return data


# ─── Task activity ───────────────────────────────────────

class Comment(WireModel):
    id: str
    content: str
    author: str
    author_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TimeLog(WireModel):
    id: str
    start_time: datetime
    end_time: datetime
    duration: int  # minutes
    note: Optional[str] = None
    user_id: Optional[str] = None


class ActiveTimer(WireModel):
    start_time: datetime
    user_id: Optional[str] = None


class CommentCreate(WireModel):
    content: str = Field(..., min_length=1, max_length=5000)
    author: str = Field(..., min_length=1, max_length=100)


class CommentUpdate(WireModel):
    content: str = Field(..., min_length=1, max_length=5000)


class TimeRequest(WireModel):
    """POST /tasks/{id}/time. ``action`` selects what the other fields mean.

    - start: begin the card's timer
    - stop: end it and log the elapsed minutes (optional ``note``)
    - log: record ``startTime``..``endTime`` after the fact
    - set_estimate: set ``estimatedTime`` in minutes
    """

    action: Literal["start", "stop", "log", "set_estimate"]
    note: Optional[str] = Field(None, max_length=1000)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    estimated_time: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _fields_for_action(self):
        if self.action == "log" and (self.start_time is None or self.end_time is None):
            raise ValueError("startTime and endTime are required to log time")
        if self.action == "set_estimate" and self.estimated_time is None:
            raise ValueError("estimatedTime is required to set an estimate")
        return self


class AssigneeAdd(WireModel):
    assignee_id: str = Field(..., min_length=1, max_length=100)


class TaskRead(ReadModel):
    id: uuid.UUID
    board_id: uuid.UUID
    text: str
    description: Optional[str]
    color: Optional[str]
    show_gradient: bool
    completed: bool
    due_date: Optional[datetime]
    progress: int
    priority: Optional[str]
    checklist: list[dict]
    tags: list[str]
    dependencies: list[str]
    comments: list[Comment] = Field(default_factory=list)
    assignee_ids: list[str] = Field(default_factory=list)
    time_logs: list[TimeLog] = Field(default_factory=list)
    active_timer: Optional[ActiveTimer] = None
    estimated_time: Optional[int] = None
    actual_time: int = 0
    order: int
    created_at: datetime
    updated_at: datetime


# ─── Boards ──────────────────────────────────────────────

class BoardCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    color: str = Field(default="#3b82f6", max_length=20)


class BoardUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)


class BoardRead(ReadModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    color: str
    order: int
    created_at: datetime
    updated_at: datetime
    tasks: list[TaskRead] = Field(default_factory=list)


# ─── Reorder ─────────────────────────────────────────────

class BoardPosition(WireModel):
    id: uuid.UUID
    order: int = Field(..., ge=0)


class BoardReorder(WireModel):
    boards: list[BoardPosition]


class TaskPosition(WireModel):
    id: uuid.UUID
    order: int = Field(..., ge=0)
    board_id: Optional[uuid.UUID] = None


class TaskReorder(WireModel):
    tasks: list[TaskPosition]
