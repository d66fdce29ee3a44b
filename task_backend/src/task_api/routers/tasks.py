from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ..auth import resolve_owner
from ..repositories import ListQuery
from ..schemas import PersistedTaskOut, TaskCreate, TaskDeletedOut, TaskListOut, TaskOut, TaskUpdate
from ..service import TaskService, get_task_service
from ..utils import list_envelope

logger = logging.getLogger(__name__)

# Mounted under settings.tasks_base_path by the application
router = APIRouter(tags=["tasks"])


def _require_id(*candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Task ID is required")


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=PersistedTaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description=(
        "Create a task owned by the caller. `persisted` is false (and the task is marked `mock`) "
        "when the store is unavailable."
    ),
    responses={
        201: {"description": "Task created"},
        400: {"description": "Validation error"},
    },
)
def create_task(
    payload: TaskCreate,
    owner: str = Depends(resolve_owner),
    service: TaskService = Depends(get_task_service),
) -> PersistedTaskOut:
    """
    Create a new Task.
    """
    created, persisted = service.create(owner, payload)
    if persisted:
        logger.info("Task %s created for %s", created["id"], owner)
    else:
        logger.warning("Task created as mock for %s (store unavailable)", owner)
    return PersistedTaskOut(**created, persisted=persisted)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TaskListOut,
    summary="List Tasks",
    description=(
        "List the caller's tasks, newest first (ties broken by id, newest first).\n\n"
        "Query parameters:\n"
        "- limit: max number of tasks to return (0..1000); all tasks when omitted\n"
        "- offset: number of tasks to skip (>=0)\n\n"
        "When the store is unavailable, sample tasks are returned with `persisted: false`."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    limit: Optional[int] = Query(None, ge=0, le=1000, description="Maximum number of tasks to return"),
    offset: int = Query(0, ge=0, description="Number of tasks to skip"),
    owner: str = Depends(resolve_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskListOut:
    """
    List tasks for the caller.
    """
    (items, total), persisted = service.list(owner, ListQuery(limit=limit, offset=offset))
    logger.debug("Listed %d of %d tasks for %s (persisted=%s)", len(items), total, owner, persisted)
    envelope = list_envelope(
        items=[TaskOut(**it) for it in items],  # type: ignore[arg-type]
        persisted=persisted,
        total=total,
        limit=limit,
        offset=offset,
    )
    return TaskListOut(**envelope)


# PUBLIC_INTERFACE
@router.put(
    "",
    response_model=PersistedTaskOut,
    summary="Update Task",
    description=(
        "Toggle completion and/or rename a task. The identifier is taken from the `taskId` "
        "query parameter or the `id` body field."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Missing identifier or nothing to update"},
        404: {"description": "Task not found"},
    },
)
def update_task(
    payload: TaskUpdate = Body(...),
    task_id: Optional[str] = Query(None, alias="taskId", description="Identifier of the task"),
    owner: str = Depends(resolve_owner),
    service: TaskService = Depends(get_task_service),
) -> PersistedTaskOut:
    """
    Partial update of a Task.
    """
    tid = _require_id(task_id, payload.id)
    updated, persisted = service.update(owner, tid, payload)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    logger.info("Task %s updated for %s (persisted=%s)", tid, owner, persisted)
    return PersistedTaskOut(**updated, persisted=persisted)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "",
    response_model=TaskDeletedOut,
    summary="Delete Task",
    description="Permanently delete a task identified by the `taskId` (or `id`) query parameter.",
    responses={
        200: {"description": "Task deleted"},
        400: {"description": "Missing identifier"},
        404: {"description": "Task not found"},
    },
)
def delete_task(
    task_id: Optional[str] = Query(None, alias="taskId", description="Identifier of the task"),
    id_: Optional[str] = Query(None, alias="id", description="Alternative name for taskId"),
    owner: str = Depends(resolve_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskDeletedOut:
    """
    Delete a Task. Returns 404 if it does not exist or belongs to someone else.
    """
    tid = _require_id(task_id, id_)
    deleted, persisted = service.delete(owner, tid)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    logger.info("Task %s deleted for %s (persisted=%s)", tid, owner, persisted)
    return TaskDeletedOut(message="Task deleted successfully", id=tid, persisted=persisted)
