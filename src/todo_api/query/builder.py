"""Filter/sort query construction for task listing.

Raw query-string values never reach the SQL text. Clause selection goes
through enums, and every filter value is passed as a bound parameter.
Malformed input falls back to defaults instead of raising, so a bad query
string can never fail a list request.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from todo_api.models import STATUSES, Task

TASK_COLUMNS = (
    "id",
    "title",
    "description",
    "status",
    "due_date",
    "priority",
    "story_points",
    "created_at",
    "updated_at",
)

# Rank used for priority ordering: ascending puts High first.
PRIORITY_RANK = {"High": 1, "Medium": 2, "Low": 3}
# Plain ASCII digits with an optional sign; no padding or underscores.
_INTEGER = re.compile(r"[+-]?[0-9]+")


class SortField(str, Enum):
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FilterColumn(str, Enum):
    STATUS = "status"
    STORY_POINTS = "story_points"


class Comparator(str, Enum):
    EQ = "="
    GTE = ">="
    LTE = "<="


@dataclass(frozen=True)
class Predicate:
    """One ``column comparator %s`` clause with its bound value."""

    column: FilterColumn
    comparator: Comparator
    value: Any

    @property
    def sql(self) -> str:
        return f"{self.column.value} {self.comparator.value} %s"

    def matches(self, task: Task) -> bool:
        current = getattr(task, self.column.value)
        # NULL never satisfies a comparison.
        if current is None:
            return False
        if self.comparator is Comparator.EQ:
            return current == self.value
        if self.comparator is Comparator.GTE:
            return current >= self.value
        return current <= self.value


@dataclass(frozen=True)
class ListFilters:
    sort_field: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    status: str | None = None
    story_points_min: int | None = None
    story_points_max: int | None = None

    @classmethod
    def from_raw(
        cls,
        *,
        sort_by: str | None = None,
        order: str | None = None,
        status: str | None = None,
        story_points_min: str | int | None = None,
        story_points_max: str | int | None = None,
    ) -> ListFilters:
        """Normalize raw query-string values, dropping anything unrecognized."""
        return cls(
            sort_field=_parse_enum(SortField, sort_by, SortField.CREATED_AT),
            sort_order=_parse_enum(SortOrder, order, SortOrder.DESC),
            status=status if status in STATUSES else None,
            story_points_min=_parse_non_negative_int(story_points_min),
            story_points_max=_parse_non_negative_int(story_points_max),
        )


@dataclass(frozen=True)
class ListQuery:
    """Parameterized SELECT over the tasks table plus its in-process twin."""

    predicates: tuple[Predicate, ...]
    sort_field: SortField
    sort_order: SortOrder

    @property
    def where_clause(self) -> str:
        if not self.predicates:
            return ""
        return "WHERE " + " AND ".join(predicate.sql for predicate in self.predicates)

    @property
    def order_by_clause(self) -> str:
        direction = "ASC" if self.sort_order is SortOrder.ASC else "DESC"
        if self.sort_field is SortField.DUE_DATE:
            return f"ORDER BY due_date {direction} NULLS LAST"
        if self.sort_field is SortField.PRIORITY:
            ranks = " ".join(f"WHEN '{name}' THEN {rank}" for name, rank in PRIORITY_RANK.items())
            return f"ORDER BY CASE priority {ranks} END {direction}"
        return f"ORDER BY created_at {direction}"

    @property
    def sql(self) -> str:
        parts = [f"SELECT {', '.join(TASK_COLUMNS)} FROM tasks"]
        if self.where_clause:
            parts.append(self.where_clause)
        parts.append(self.order_by_clause)
        return " ".join(parts)

    @property
    def params(self) -> tuple[Any, ...]:
        return tuple(predicate.value for predicate in self.predicates)

    def apply(self, tasks: Iterable[Task]) -> list[Task]:
        """Evaluate the same filter and ordering against in-memory records."""
        matched = [task for task in tasks if all(p.matches(task) for p in self.predicates)]
        descending = self.sort_order is SortOrder.DESC

        if self.sort_field is SortField.DUE_DATE:
            dated = [task for task in matched if task.due_date is not None]
            undated = [task for task in matched if task.due_date is None]
            dated.sort(key=lambda task: task.due_date, reverse=descending)
            return dated + undated
        if self.sort_field is SortField.PRIORITY:
            return sorted(
                matched,
                key=lambda task: PRIORITY_RANK.get(task.priority, len(PRIORITY_RANK) + 1),
                reverse=descending,
            )
        return sorted(matched, key=lambda task: (task.created_at, task.id), reverse=descending)


def build_list_query(filters: ListFilters) -> ListQuery:
    """Turn normalized filters into predicates in a fixed order.

    Order is status, then story_points >= min, then story_points <= max, so
    placeholder positions are reproducible. A min above max is passed through
    untouched and simply matches nothing.
    """
    predicates: list[Predicate] = []
    if filters.status is not None:
        predicates.append(Predicate(FilterColumn.STATUS, Comparator.EQ, filters.status))
    if filters.story_points_min is not None:
        predicates.append(
            Predicate(FilterColumn.STORY_POINTS, Comparator.GTE, filters.story_points_min)
        )
    if filters.story_points_max is not None:
        predicates.append(
            Predicate(FilterColumn.STORY_POINTS, Comparator.LTE, filters.story_points_max)
        )
    return ListQuery(
        predicates=tuple(predicates),
        sort_field=filters.sort_field,
        sort_order=filters.sort_order,
    )


def _parse_enum(enum_cls: type[Enum], raw: str | None, default: Enum) -> Any:
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _parse_non_negative_int(raw: str | int | None) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if _INTEGER.fullmatch(raw) is None:
        return None
    value = int(raw)
    return value if value >= 0 else None
