from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from todo_api.models import CreateSubtaskRequest, Subtask, UpdateSubtaskRequest
from todo_api.query import resolve_subtask_create, resolve_subtask_update
from todo_api.storage.base import TodoStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/todos/{todo_id}/subtasks", tags=["subtasks"])


def _get_storage(request: Request) -> TodoStorage:
    return request.app.state.storage


@router.get("", response_model=list[Subtask])
def list_subtasks(todo_id: int, request: Request) -> list[Subtask]:
    return _get_storage(request).list_subtasks(todo_id)


@router.post("", response_model=Subtask, status_code=201)
def create_subtask(todo_id: int, payload: CreateSubtaskRequest, request: Request) -> Subtask:
    title = resolve_subtask_create(payload)
    subtask = _get_storage(request).create_subtask(todo_id, title)
    logger.info("subtask event=created todo_id=%s subtask_id=%s", todo_id, subtask.id)
    return subtask


@router.put("/{subtask_id}", response_model=Subtask)
def update_subtask(
    todo_id: int,
    subtask_id: int,
    payload: UpdateSubtaskRequest,
    request: Request,
) -> Subtask:
    plan = resolve_subtask_update(payload)
    subtask = _get_storage(request).update_subtask(todo_id, subtask_id, plan)
    logger.info(
        "subtask event=updated todo_id=%s subtask_id=%s completed=%s",
        todo_id,
        subtask_id,
        subtask.completed,
    )
    return subtask


@router.delete("/{subtask_id}", status_code=204)
def delete_subtask(todo_id: int, subtask_id: int, request: Request) -> Response:
    _get_storage(request).delete_subtask(todo_id, subtask_id)
    logger.info("subtask event=deleted todo_id=%s subtask_id=%s", todo_id, subtask_id)
    return Response(status_code=204)
