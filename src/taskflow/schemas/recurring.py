"""Pydantic schemas for recurring task schedules.

A schedule points at a template task on one of the caller's boards and a
RecurrencePattern saying how far to advance after each generated copy.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import Field

from taskflow.schemas.base import ReadModel, WireModel

Weekday = Annotated[int, Field(ge=0, le=6)]  # 0 = Sunday


class RecurrencePattern(WireModel):
    frequency: Literal["daily", "weekly", "monthly", "yearly", "custom"]
    interval: int = Field(..., ge=1)
    days_of_week: list[Weekday] = Field(default_factory=list)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    end_date: Optional[datetime] = None


class RecurringTaskCreate(WireModel):
    board_id: uuid.UUID
    task_id: uuid.UUID
    pattern: RecurrencePattern
    next_due_date: datetime


class RecurringTaskUpdate(WireModel):
    pattern: Optional[RecurrencePattern] = None
    next_due_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True, exclude={"pattern"})
        if self.pattern is not None:
            data["pattern"] = self.pattern.model_dump(mode="json")
        return data


class BoardSummary(ReadModel):
    id: uuid.UUID
    title: str


class TemplateSummary(ReadModel):
    id: uuid.UUID
    text: str
    description: Optional[str] = None
    priority: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class RecurringTaskRead(ReadModel):
    id: uuid.UUID
    board_id: uuid.UUID
    task_id: uuid.UUID
    pattern: RecurrencePattern
    next_due_date: datetime
    is_active: bool
    last_generated: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    board: Optional[BoardSummary] = None
    task: Optional[TemplateSummary] = None
