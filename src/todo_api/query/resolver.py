"""Partial update resolution for tasks and subtasks.

Every mutable field resolves to one of three changes:

- KEEP: the field was absent (or sent in a form that means "unchanged").
- CLEAR: the field was explicitly emptied and is stored as NULL.
- SET: the field takes a new value.

Validation happens while resolving, before anything is sent to storage, so
a bad enum or story-point value aborts the whole update with no effect.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

from todo_api.errors import ValidationError
from todo_api.models import (
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    PRIORITIES,
    STATUSES,
    STORY_POINTS,
    CreateSubtaskRequest,
    CreateTaskRequest,
    UpdateSubtaskRequest,
    UpdateTaskRequest,
)

RecordT = TypeVar("RecordT", bound=BaseModel)

# Matches the VARCHAR(255) title columns.
MAX_TITLE_LENGTH = 255


class ChangeKind(Enum):
    KEEP = "keep"
    CLEAR = "clear"
    SET = "set"


@dataclass(frozen=True)
class FieldChange:
    kind: ChangeKind
    value: Any = None

    @classmethod
    def set(cls, value: Any) -> FieldChange:
        return cls(ChangeKind.SET, value)

    @property
    def is_keep(self) -> bool:
        return self.kind is ChangeKind.KEEP


KEEP = FieldChange(ChangeKind.KEEP)
CLEAR = FieldChange(ChangeKind.CLEAR)


@dataclass(frozen=True)
class UpdatePlan:
    """Resolved column changes, rendered as one atomic UPDATE."""

    changes: Mapping[str, FieldChange]

    @property
    def assignments(self) -> list[tuple[str, Any]]:
        return [
            (column, change.value if change.kind is ChangeKind.SET else None)
            for column, change in self.changes.items()
            if not change.is_keep
        ]

    def to_sql(
        self,
        table: str,
        keys: Mapping[str, Any],
        returning: tuple[str, ...],
    ) -> tuple[str, tuple[Any, ...]]:
        """Render ``UPDATE ... RETURNING`` with KEEP columns left out.

        ``updated_at`` is always refreshed, even when every field is KEEP.
        Table and column names come from module constants, never from input.
        """
        assignments = self.assignments
        set_clauses = [f"{column} = %s" for column, _ in assignments]
        set_clauses.append("updated_at = now()")
        where = " AND ".join(f"{column} = %s" for column in keys)
        sql = (
            f"UPDATE {table} SET {', '.join(set_clauses)} "
            f"WHERE {where} RETURNING {', '.join(returning)}"
        )
        params = tuple(value for _, value in assignments) + tuple(keys.values())
        return sql, params

    def apply(self, current: RecordT, updated_at: datetime) -> RecordT:
        """Merge the plan into an in-memory record."""
        update = dict(self.assignments)
        update["updated_at"] = updated_at
        return current.model_copy(update=update)


@dataclass(frozen=True)
class NewTask:
    title: str
    description: str | None
    status: str
    due_date: datetime | None
    priority: str
    story_points: int | None


def resolve_task_create(payload: CreateTaskRequest) -> NewTask:
    """Validate a create payload and apply defaults."""
    title = _require_title(payload.title)
    status = _validated_choice("status", payload.status, STATUSES) or DEFAULT_STATUS
    priority = _validated_choice("priority", payload.priority, PRIORITIES) or DEFAULT_PRIORITY
    story_points = _validated_story_points(payload.story_points)
    return NewTask(
        title=title,
        description=_blank_to_none(payload.description),
        status=status,
        due_date=payload.due_date,
        priority=priority,
        story_points=story_points,
    )


def resolve_task_update(payload: UpdateTaskRequest) -> UpdatePlan:
    """Resolve a partial task update.

    | field        | absent | empty / null         | value                 |
    |--------------|--------|----------------------|-----------------------|
    | title        | keep   | keep                 | replace, <= 255 chars |
    | description  | keep   | clear                | replace               |
    | status       | keep   | keep                 | replace, valid enum   |
    | due_date     | keep   | keep                 | replace, naive is UTC |
    | priority     | keep   | keep                 | replace, valid enum   |
    | story_points | keep   | keep                 | replace, 1/2/3/5/8    |

    Whitespace-only titles and descriptions count as empty.
    """
    supplied = payload.model_fields_set

    status = _validated_choice("status", payload.status, STATUSES)
    priority = _validated_choice("priority", payload.priority, PRIORITIES)
    story_points = _validated_story_points(payload.story_points)

    if "description" not in supplied:
        description = KEEP
    elif _blank_to_none(payload.description) is None:
        description = CLEAR
    else:
        description = FieldChange.set(payload.description)

    return UpdatePlan(
        changes={
            "title": _set_unless_blank(payload.title),
            "description": description,
            "status": _set_if_present(status),
            "due_date": _set_if_present(payload.due_date),
            "priority": _set_if_present(priority),
            "story_points": _set_if_present(story_points),
        }
    )


def resolve_subtask_create(payload: CreateSubtaskRequest) -> str:
    return _require_title(payload.title)


def resolve_subtask_update(payload: UpdateSubtaskRequest) -> UpdatePlan:
    return UpdatePlan(
        changes={
            "title": _set_unless_blank(payload.title),
            "completed": FieldChange.set(payload.completed),
        }
    )


def _require_title(title: str | None) -> str:
    if title is None or not title.strip():
        raise ValidationError("title", "title is required and must not be empty")
    return _checked_title_length(title)


def _set_unless_blank(title: str | None) -> FieldChange:
    if title is None or not title.strip():
        return KEEP
    return FieldChange.set(_checked_title_length(title))


def _checked_title_length(title: str) -> str:
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError("title", f"title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def _blank_to_none(text: str | None) -> str | None:
    if text is None or not text.strip():
        return None
    return text


def _set_if_present(value: Any) -> FieldChange:
    return KEEP if value is None else FieldChange.set(value)


def _validated_choice(field: str, value: str | None, allowed: tuple[str, ...]) -> str | None:
    """Return the value if valid, None if empty; raise otherwise."""
    if not value:
        return None
    if value not in allowed:
        raise ValidationError(field, f"invalid {field} value. Must be one of: {', '.join(allowed)}")
    return value


def _validated_story_points(value: int | None) -> int | None:
    if value is None:
        return None
    if value not in STORY_POINTS:
        choices = ", ".join(str(points) for points in STORY_POINTS)
        raise ValidationError(
            "story_points", f"invalid story points value. Must be one of: {choices}"
        )
    return value
