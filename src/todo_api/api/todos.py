from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request, Response

from todo_api.models import CreateTaskRequest, Task, UpdateTaskRequest, VelocitySummary
from todo_api.query import (
    ListFilters,
    build_list_query,
    resolve_task_create,
    resolve_task_update,
)
from todo_api.storage.base import TodoStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["todos"])


def _get_storage(request: Request) -> TodoStorage:
    return request.app.state.storage


@router.get("/todos", response_model=list[Task])
def list_todos(
    request: Request,
    sort_by: str | None = Query(None),
    order: str | None = Query(None),
    status: str | None = Query(None),
    # Kept as strings so malformed numbers are dropped instead of rejected.
    story_points_min: str | None = Query(None),
    story_points_max: str | None = Query(None),
) -> list[Task]:
    filters = ListFilters.from_raw(
        sort_by=sort_by,
        order=order,
        status=status,
        story_points_min=story_points_min,
        story_points_max=story_points_max,
    )
    return _get_storage(request).list_tasks(build_list_query(filters))


@router.get("/todos/{todo_id}", response_model=Task)
def get_todo(todo_id: int, request: Request) -> Task:
    storage = _get_storage(request)
    task = storage.get_task(todo_id)
    return task.model_copy(update={"subtask_progress": storage.subtask_progress(todo_id)})


@router.post("/todos", response_model=Task, status_code=201)
def create_todo(payload: CreateTaskRequest, request: Request) -> Task:
    values = resolve_task_create(payload)
    task = _get_storage(request).create_task(values)
    logger.info("todo event=created todo_id=%s status=%s", task.id, task.status)
    return task


@router.put("/todos/{todo_id}", response_model=Task)
def update_todo(todo_id: int, payload: UpdateTaskRequest, request: Request) -> Task:
    plan = resolve_task_update(payload)
    task = _get_storage(request).update_task(todo_id, plan)
    changed = [column for column, _ in plan.assignments]
    logger.info("todo event=updated todo_id=%s changed=%s", todo_id, changed)
    return task


@router.delete("/todos/{todo_id}", status_code=204)
def delete_todo(todo_id: int, request: Request) -> Response:
    _get_storage(request).delete_task(todo_id)
    logger.info("todo event=deleted todo_id=%s", todo_id)
    return Response(status_code=204)


@router.get("/velocity", response_model=VelocitySummary)
def velocity(request: Request) -> VelocitySummary:
    return _get_storage(request).velocity()
