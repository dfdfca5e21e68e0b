"""Query construction and partial-update resolution."""

from todo_api.query.builder import (
    ListFilters,
    ListQuery,
    Predicate,
    SortField,
    SortOrder,
    build_list_query,
)
from todo_api.query.resolver import (
    ChangeKind,
    FieldChange,
    NewTask,
    UpdatePlan,
    resolve_subtask_create,
    resolve_subtask_update,
    resolve_task_create,
    resolve_task_update,
)

__all__ = [
    "ChangeKind",
    "FieldChange",
    "ListFilters",
    "ListQuery",
    "NewTask",
    "Predicate",
    "SortField",
    "SortOrder",
    "UpdatePlan",
    "build_list_query",
    "resolve_subtask_create",
    "resolve_subtask_update",
    "resolve_task_create",
    "resolve_task_update",
]
