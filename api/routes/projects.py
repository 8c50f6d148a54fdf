"""
api/routes/projects.py -- Project routes, scoped to the calling principal.

Routes (static paths before parameterized ones):
  POST   /projects/create-project             -- create a project owned by the caller
  GET    /projects/get-projects               -- filtered, sorted, paginated list
  GET    /projects/statistics                 -- per-status counts of the caller's projects
  GET    /projects/project/{project_id}       -- one project
  PUT    /projects/update-project/{id}        -- partial update
  DELETE /projects/delete-project/{id}        -- delete; the caller's tasks are detached

Same ownership rules as api/routes/tasks.py: owner from the token, 404 with
PROJECT_NOT_FOUND for anything the caller does not own.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    DATE_PATTERN,
    MessageResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectSavedResponse,
    ProjectSortEnum,
    ProjectStatisticsResponse,
    ProjectStatisticsRow,
    ProjectStatusFilterEnum,
    ProjectUpdate,
    SortOrderEnum,
)
from auth.dependencies import get_current_principal
from auth.models import Principal
from core.errors import PROJECT_NOT_FOUND, NotFoundError, ValidationError
from tracker.store import TrackerStore

router = APIRouter(dependencies=[Depends(get_current_principal)])

# The browser client sends empty strings for unset date filters.
_OPTIONAL_DATE = f"^$|{DATE_PATTERN}"


@router.post("/create-project", response_model=ProjectSavedResponse, status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    principal: Principal = Depends(get_current_principal),
) -> ProjectSavedResponse:
    store: TrackerStore = request.app.state.tracker
    project = store.create_project(body.to_project(), owner_id=principal.id)
    return ProjectSavedResponse(message="Project created successfully", project=ProjectResponse.from_project(project))


@router.get("/get-projects", response_model=ProjectListResponse)
def list_projects(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=255),
    status: ProjectStatusFilterEnum = ProjectStatusFilterEnum.all,
    start_date: Optional[str] = Query(default=None, alias="startDate", pattern=_OPTIONAL_DATE),
    end_date: Optional[str] = Query(default=None, alias="endDate", pattern=_OPTIONAL_DATE),
    sort_by: ProjectSortEnum = Query(default=ProjectSortEnum.created_at, alias="sortBy"),
    sort_order: SortOrderEnum = Query(default=SortOrderEnum.desc, alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
) -> ProjectListResponse:
    """Return one page of the caller's projects.

    search matches project names case-insensitively. startDate/endDate bound
    due_date inclusively; "" means unbounded.
    """
    start_date = start_date or None
    end_date = end_date or None
    if start_date and end_date and start_date > end_date:
        raise ValidationError("End date must be after start date", code="invalid_date_range")

    store: TrackerStore = request.app.state.tracker
    projects, total = store.list_projects(
        principal.id,
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        status=None if status is ProjectStatusFilterEnum.all else status.value,
        due_from=start_date,
        due_to=end_date,
        sort_by=sort_by.value,
        descending=sort_order is SortOrderEnum.desc,
    )
    return ProjectListResponse(
        projects=[ProjectResponse.from_project(p) for p in projects],
        total=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
    )


@router.get("/statistics", response_model=ProjectStatisticsResponse)
def project_statistics(
    request: Request,
    principal: Principal = Depends(get_current_principal),
) -> ProjectStatisticsResponse:
    """Count the caller's projects per status. Every status is listed, zeros included."""
    store: TrackerStore = request.app.state.tracker
    counts = store.get_project_status_counts(principal.id)
    return ProjectStatisticsResponse(
        statistics=[ProjectStatisticsRow(status=status, count=count) for status, count in counts.items()]
    )


@router.get("/project/{project_id}", response_model=ProjectResponse)
def get_project(
    request: Request,
    project_id: str,
    principal: Principal = Depends(get_current_principal),
) -> ProjectResponse:
    store: TrackerStore = request.app.state.tracker
    project = store.get_project(project_id, principal.id)
    if project is None:
        raise NotFoundError(PROJECT_NOT_FOUND)
    return ProjectResponse.from_project(project)


@router.put("/update-project/{project_id}", response_model=ProjectSavedResponse)
def update_project(
    request: Request,
    project_id: str,
    body: ProjectUpdate,
    principal: Principal = Depends(get_current_principal),
) -> ProjectSavedResponse:
    fields = body.to_fields()
    if not fields:
        raise ValidationError("No fields to update", code="no_changes")
    store: TrackerStore = request.app.state.tracker
    project = store.update_project(project_id, principal.id, **fields)
    if project is None:
        raise NotFoundError(PROJECT_NOT_FOUND)
    return ProjectSavedResponse(message="Project updated successfully", project=ProjectResponse.from_project(project))


@router.delete("/delete-project/{project_id}", response_model=MessageResponse)
def delete_project(
    request: Request,
    project_id: str,
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    store: TrackerStore = request.app.state.tracker
    if not store.delete_project(project_id, principal.id):
        raise NotFoundError(PROJECT_NOT_FOUND)
    return MessageResponse(message="Project deleted successfully")
