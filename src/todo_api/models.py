"""Pydantic models shared across API, resolver, and storage.

Request models keep enum fields as plain strings on purpose: an empty
``status`` or ``priority`` on update means "leave unchanged", so the
resolver, not the schema, decides what is valid.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal, get_args

from pydantic import BaseModel, Field, field_validator

TaskStatus = Literal["todo", "in_progress", "done"]
Priority = Literal["High", "Medium", "Low"]

STATUSES: tuple[str, ...] = get_args(TaskStatus)
PRIORITIES: tuple[str, ...] = get_args(Priority)
# Fibonacci-style estimation scale.
STORY_POINTS: tuple[int, ...] = (1, 2, 3, 5, 8)

DEFAULT_STATUS: TaskStatus = "todo"
DEFAULT_PRIORITY: Priority = "Medium"


def _assume_utc(value: datetime | None) -> datetime | None:
    """Naive timestamps are read as UTC so stored due dates stay comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Task(BaseModel):
    """Canonical task ("todo") record returned by API/storage."""

    id: int
    title: str
    description: str | None = None
    status: TaskStatus = DEFAULT_STATUS
    due_date: datetime | None = None
    priority: Priority = DEFAULT_PRIORITY
    story_points: int | None = None
    # "<completed>/<total>", only filled in on single-task reads.
    subtask_progress: str | None = None
    created_at: datetime
    updated_at: datetime


class Subtask(BaseModel):
    """Checklist item owned by exactly one task."""

    id: int
    task_id: int
    title: str
    completed: bool = False
    created_at: datetime
    updated_at: datetime


class CreateTaskRequest(BaseModel):
    """Request body for POST /todos."""

    title: str | None = None
    description: str | None = None
    status: str | None = None
    due_date: datetime | None = None
    priority: str | None = None
    story_points: int | None = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)


class UpdateTaskRequest(BaseModel):
    """Request body for PUT /todos/{id}.

    Fields left out of the JSON body are absent; ``model_fields_set`` is what
    tells an absent field apart from one sent as null or "".
    """

    title: str | None = None
    description: str | None = None
    status: str | None = None
    due_date: datetime | None = None
    priority: str | None = None
    story_points: int | None = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)


class CreateSubtaskRequest(BaseModel):
    title: str | None = None


class UpdateSubtaskRequest(BaseModel):
    title: str | None = None
    # Always written; omitting it means false.
    completed: bool = False


class VelocitySummary(BaseModel):
    """Story-point totals across all tasks."""

    total_estimated: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    remaining: int = Field(default=0, ge=0)
