"""In-memory storage backend for tests only."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from todo_api.errors import NotFoundError
from todo_api.models import Subtask, Task, VelocitySummary
from todo_api.query.builder import ListQuery
from todo_api.query.resolver import NewTask, UpdatePlan


class InMemoryTodoStorage:
    """Dict-backed implementation mirroring the PostgreSQL contract.

    ``write_count`` counts inserts, updates, and deletes that actually touched
    a record, so tests can assert that a failed mutation wrote nothing.
    """

    def __init__(self) -> None:
        self._tasks: dict[int, Task] = {}
        self._subtasks: dict[int, Subtask] = {}
        self._next_task_id = 1
        self._next_subtask_id = 1
        self._lock = threading.Lock()
        self.write_count = 0
        self.closed = False

    def migrate(self) -> None:
        return None

    def ping(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    def list_tasks(self, query: ListQuery) -> list[Task]:
        with self._lock:
            return query.apply(list(self._tasks.values()))

    def get_task(self, task_id: int) -> Task:
        with self._lock:
            return self._require_task(task_id)

    def create_task(self, values: NewTask) -> Task:
        now = datetime.now(UTC)
        with self._lock:
            record = Task(
                id=self._next_task_id,
                title=values.title,
                description=values.description,
                status=values.status,
                due_date=values.due_date,
                priority=values.priority,
                story_points=values.story_points,
                created_at=now,
                updated_at=now,
            )
            self._next_task_id += 1
            self._tasks[record.id] = record
            self.write_count += 1
            return record

    def update_task(self, task_id: int, plan: UpdatePlan) -> Task:
        with self._lock:
            current = self._require_task(task_id)
            updated = plan.apply(current, datetime.now(UTC))
            self._tasks[task_id] = updated
            self.write_count += 1
            return updated

    def delete_task(self, task_id: int) -> None:
        with self._lock:
            if self._tasks.pop(task_id, None) is None:
                raise NotFoundError("task", task_id)
            # Mirrors ON DELETE CASCADE.
            for subtask_id in [s.id for s in self._subtasks.values() if s.task_id == task_id]:
                del self._subtasks[subtask_id]
            self.write_count += 1

    def list_subtasks(self, task_id: int) -> list[Subtask]:
        with self._lock:
            self._require_task(task_id)
            children = [s for s in self._subtasks.values() if s.task_id == task_id]
            return sorted(children, key=lambda subtask: subtask.created_at)

    def create_subtask(self, task_id: int, title: str) -> Subtask:
        now = datetime.now(UTC)
        with self._lock:
            self._require_task(task_id)
            record = Subtask(
                id=self._next_subtask_id,
                task_id=task_id,
                title=title,
                completed=False,
                created_at=now,
                updated_at=now,
            )
            self._next_subtask_id += 1
            self._subtasks[record.id] = record
            self.write_count += 1
            return record

    def update_subtask(self, task_id: int, subtask_id: int, plan: UpdatePlan) -> Subtask:
        with self._lock:
            self._require_task(task_id)
            current = self._require_subtask(task_id, subtask_id)
            updated = plan.apply(current, datetime.now(UTC))
            self._subtasks[subtask_id] = updated
            self.write_count += 1
            return updated

    def delete_subtask(self, task_id: int, subtask_id: int) -> None:
        with self._lock:
            self._require_subtask(task_id, subtask_id)
            del self._subtasks[subtask_id]
            self.write_count += 1

    def subtask_progress(self, task_id: int) -> str | None:
        with self._lock:
            children = [s for s in self._subtasks.values() if s.task_id == task_id]
        if not children:
            return None
        completed = sum(1 for subtask in children if subtask.completed)
        return f"{completed}/{len(children)}"

    def velocity(self) -> VelocitySummary:
        with self._lock:
            estimated = [t for t in self._tasks.values() if t.story_points is not None]
        total = sum(task.story_points or 0 for task in estimated)
        completed = sum(task.story_points or 0 for task in estimated if task.status == "done")
        return VelocitySummary(
            total_estimated=total,
            completed=completed,
            remaining=total - completed,
        )

    def _require_task(self, task_id: int) -> Task:
        record = self._tasks.get(task_id)
        if record is None:
            raise NotFoundError("task", task_id)
        return record

    def _require_subtask(self, task_id: int, subtask_id: int) -> Subtask:
        record = self._subtasks.get(subtask_id)
        if record is None or record.task_id != task_id:
            raise NotFoundError("subtask", subtask_id)
        return record
