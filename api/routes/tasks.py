"""
api/routes/tasks.py -- Task routes, scoped to the calling principal.

Routes:
  POST   /tasks/create-task                 -- create a task owned by the caller
  GET    /tasks/tasks                       -- paginated list of the caller's tasks
  GET    /tasks/task/{task_id}              -- one task
  PUT    /tasks/update-task/{task_id}       -- partial update of any mutable field
  PATCH  /tasks/update-task/status/{id}     -- status only
  PATCH  /tasks/update-task/priority/{id}   -- priority only
  DELETE /tasks/delete-task/{task_id}       -- delete

Ownership:
  The owner is always principal.id from the gate. TrackerStore puts
  created_by = principal.id into every statement, so a task owned by someone
  else comes back as None and is reported with the same 404 / TASK_NOT_FOUND
  as a task that never existed.

  A projectId on a task must name one of the caller's own projects;
  TrackerStore raises NotFoundError(PROJECT_NOT_FOUND) otherwise.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    MessageResponse,
    PriorityEnum,
    TaskCreate,
    TaskCreatedResponse,
    TaskListResponse,
    TaskPriorityUpdate,
    TaskResponse,
    TaskStatusEnum,
    TaskStatusUpdate,
    TaskUpdate,
    TaskUpdatedResponse,
)
from auth.dependencies import get_current_principal
from auth.models import Principal
from core.errors import TASK_NOT_FOUND, NotFoundError, ValidationError
from tracker.models import Task
from tracker.store import TrackerStore

# Router-level dependency: every route registered here goes through the gate,
# including ones added later that forget to ask for the principal.
router = APIRouter(dependencies=[Depends(get_current_principal)])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _updated(task: Optional[Task], message: str) -> TaskUpdatedResponse:
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    return TaskUpdatedResponse(message=message, updated_task=TaskResponse.from_task(task))


# ---------------------------------------------------------------------------
# POST /tasks/create-task
# ---------------------------------------------------------------------------


@router.post("/create-task", response_model=TaskCreatedResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    principal: Principal = Depends(get_current_principal),
) -> TaskCreatedResponse:
    """Create a task. createdBy is the caller, whatever the body says."""
    store: TrackerStore = request.app.state.tracker
    task = store.create_task(body.to_task(), owner_id=principal.id)
    return TaskCreatedResponse(message="Task created successfully", task=TaskResponse.from_task(task))


# ---------------------------------------------------------------------------
# GET /tasks/tasks
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: Optional[TaskStatusEnum] = None,
    priority: Optional[PriorityEnum] = None,
    principal: Principal = Depends(get_current_principal),
) -> TaskListResponse:
    """Return one page of the caller's tasks, newest first.

    The ownership filter is applied before pagination, so total and
    totalPages describe the caller's tasks only.
    """
    store: TrackerStore = request.app.state.tracker
    tasks, total = store.list_tasks(
        principal.id,
        page=page,
        limit=limit,
        status=status.value if status else None,
        priority=priority.value if priority else None,
    )
    return TaskListResponse(
        tasks=[TaskResponse.from_task(t) for t in tasks],
        total=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
    )


# ---------------------------------------------------------------------------
# GET /tasks/task/{task_id}
# ---------------------------------------------------------------------------


@router.get("/task/{task_id}", response_model=TaskResponse)
def get_task(
    request: Request,
    task_id: str,
    principal: Principal = Depends(get_current_principal),
) -> TaskResponse:
    store: TrackerStore = request.app.state.tracker
    task = store.get_task(task_id, principal.id)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    return TaskResponse.from_task(task)


# ---------------------------------------------------------------------------
# Updates -- every variant goes through the same (id, owner) predicate
# ---------------------------------------------------------------------------


@router.patch("/update-task/status/{task_id}", response_model=TaskUpdatedResponse)
def update_task_status(
    request: Request,
    task_id: str,
    body: TaskStatusUpdate,
    principal: Principal = Depends(get_current_principal),
) -> TaskUpdatedResponse:
    store: TrackerStore = request.app.state.tracker
    task = store.update_task(task_id, principal.id, status=body.status.value)
    return _updated(task, "Task status updated")


@router.patch("/update-task/priority/{task_id}", response_model=TaskUpdatedResponse)
def update_task_priority(
    request: Request,
    task_id: str,
    body: TaskPriorityUpdate,
    principal: Principal = Depends(get_current_principal),
) -> TaskUpdatedResponse:
    store: TrackerStore = request.app.state.tracker
    task = store.update_task(task_id, principal.id, priority=body.priority.value)
    return _updated(task, "Priority updated")


@router.put("/update-task/{task_id}", response_model=TaskUpdatedResponse)
def update_task(
    request: Request,
    task_id: str,
    body: TaskUpdate,
    principal: Principal = Depends(get_current_principal),
) -> TaskUpdatedResponse:
    """Apply the supplied fields to the caller's task."""
    fields = body.to_fields()
    if not fields:
        raise ValidationError("No fields to update", code="no_changes")
    store: TrackerStore = request.app.state.tracker
    task = store.update_task(task_id, principal.id, **fields)
    return _updated(task, "Task updated successfully")


# ---------------------------------------------------------------------------
# DELETE /tasks/delete-task/{task_id}
# ---------------------------------------------------------------------------


@router.delete("/delete-task/{task_id}", response_model=MessageResponse)
def delete_task(
    request: Request,
    task_id: str,
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    store: TrackerStore = request.app.state.tracker
    if not store.delete_task(task_id, principal.id):
        raise NotFoundError(TASK_NOT_FOUND)
    return MessageResponse(message="Task deleted successfully")
