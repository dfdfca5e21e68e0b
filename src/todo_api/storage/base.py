"""Storage interface for tasks and their subtasks."""

from __future__ import annotations

from typing import Protocol

from todo_api.models import Subtask, Task, VelocitySummary
from todo_api.query.builder import ListQuery
from todo_api.query.resolver import NewTask, UpdatePlan


class TodoStorage(Protocol):
    def migrate(self) -> None: ...

    def ping(self) -> None: ...

    def close(self) -> None: ...

    def list_tasks(self, query: ListQuery) -> list[Task]: ...

    def get_task(self, task_id: int) -> Task: ...

    def create_task(self, values: NewTask) -> Task: ...

    def update_task(self, task_id: int, plan: UpdatePlan) -> Task: ...

    def delete_task(self, task_id: int) -> None: ...

    def list_subtasks(self, task_id: int) -> list[Subtask]: ...

    def create_subtask(self, task_id: int, title: str) -> Subtask: ...

    def update_subtask(self, task_id: int, subtask_id: int, plan: UpdatePlan) -> Subtask: ...

    def delete_subtask(self, task_id: int, subtask_id: int) -> None: ...

    def subtask_progress(self, task_id: int) -> str | None: ...

    def velocity(self) -> VelocitySummary: ...
