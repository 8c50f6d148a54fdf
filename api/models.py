"""
API request and response models for the task tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tracker/models.py, which own the internal domain representation. Route
handlers map between the two.

Ownership: no request model has a created_by / owner field. Unknown keys are
ignored (pydantic's default), so a client that sends "createdBy" gets it
dropped before the handler runs. The owner always comes from the token.

Wire format: task payloads use camelCase keys (dueDate, projectId, createdBy)
and accept snake_case on input; project payloads use snake_case.
"""

import re
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from tracker.models import Project, Task

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# bcrypt ignores everything past 72 bytes; refuse such passwords up front.
_PASSWORD_MAX_BYTES = 72
_SYMBOL_RE = re.compile(r"[^A-Za-z0-9]")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TaskStatusEnum(str, Enum):
    pending = "pending"
    in_progress = "in progress"
    completed = "completed"


class PriorityEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ProjectStatusEnum(str, Enum):
    active = "active"
    completed = "completed"


class ProjectStatusFilterEnum(str, Enum):
    all = "all"
    active = "active"
    completed = "completed"


class ProjectSortEnum(str, Enum):
    created_at = "created_at"
    name = "name"
    due_date = "due_date"
    status = "status"


class SortOrderEnum(str, Enum):
    asc = "asc"
    desc = "desc"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: str
    detail: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup.

    Password strength: at least 8 characters with one lowercase letter, one
    uppercase letter, one digit and one symbol; at most 72 bytes UTF-8.
    The password is taken verbatim -- only name is whitespace-stripped.
    """

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if len(value.encode("utf-8")) > _PASSWORD_MAX_BYTES:
            raise ValueError("Password must be at most 72 bytes")
        if not (
            any(c.islower() for c in value)
            and any(c.isupper() for c in value)
            and any(c.isdigit() for c in value)
            and _SYMBOL_RE.search(value)
        ):
            raise ValueError("Password must be strong: use upper and lower case letters, a number and a symbol")
        return value


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    No strength rules here: a login attempt with a weak password must fail
    as bad credentials (401), not as a validation error that would reveal
    the password policy applies.
    """

    email: EmailStr
    password: str = Field(min_length=1, max_length=1024)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Public profile fields. The password hash is never part of a response."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, name=user.name, email=user.email)


class SignupResponse(BaseModel):
    message: str
    user: UserPublic


class LoginResponse(BaseModel):
    message: str
    user: UserPublic
    token: str


class MeResponse(BaseModel):
    message: str
    user: UserPublic


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class TaskCreate(_CamelModel):
    """Request body for POST /tasks/create-task."""

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: TaskStatusEnum = TaskStatusEnum.pending
    priority: PriorityEnum = PriorityEnum.medium
    due_date: Optional[date] = None
    project_id: Optional[str] = Field(default=None, max_length=32)

    def to_task(self) -> Task:
        return Task(
            title=self.title,
            description=self.description,
            status=self.status.value,
            priority=self.priority.value,
            due_date=self.due_date.isoformat() if self.due_date else None,
            project_id=self.project_id,
        )


class TaskUpdate(_CamelModel):
    """Request body for PUT /tasks/update-task/{id}. Only supplied fields change."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[TaskStatusEnum] = None
    priority: Optional[PriorityEnum] = None
    due_date: Optional[date] = None
    project_id: Optional[str] = Field(default=None, max_length=32)

    @model_validator(mode="after")
    def required_columns_not_null(self) -> "TaskUpdate":
        for name in ("title", "status", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_fields(self) -> dict:
        """Return only the fields the client sent, converted to storage values."""
        fields = self.model_dump(exclude_unset=True)
        for name in ("status", "priority"):
            if name in fields:
                fields[name] = fields[name].value
        if fields.get("due_date") is not None:
            fields["due_date"] = fields["due_date"].isoformat()
        return fields


class TaskStatusUpdate(_CamelModel):
    status: TaskStatusEnum


class TaskPriorityUpdate(_CamelModel):
    priority: PriorityEnum


class TaskResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: Optional[str]
    project_id: Optional[str]
    created_by: str
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        """Factory Method: the domain-to-wire mapping lives next to the wire model."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            project_id=task.project_id,
            created_by=task.created_by,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskCreatedResponse(_CamelModel):
    message: str
    task: TaskResponse


class TaskUpdatedResponse(_CamelModel):
    message: str
    updated_task: TaskResponse


class TaskListResponse(_CamelModel):
    """Response for GET /tasks/tasks. total and totalPages cover the caller's tasks only."""

    tasks: list[TaskResponse]
    total: int
    total_pages: int
    current_page: int


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """Request body for POST /projects/create-project."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: ProjectStatusEnum = ProjectStatusEnum.active
    due_date: date

    def to_project(self) -> Project:
        return Project(
            name=self.name,
            description=self.description,
            status=self.status.value,
            due_date=self.due_date.isoformat(),
        )


class ProjectUpdate(BaseModel):
    """Request body for PUT /projects/update-project/{id}. Only supplied fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[ProjectStatusEnum] = None
    due_date: Optional[date] = None

    @model_validator(mode="after")
    def required_columns_not_null(self) -> "ProjectUpdate":
        for name in ("name", "status", "due_date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_fields(self) -> dict:
        fields = self.model_dump(exclude_unset=True)
        if "status" in fields:
            fields["status"] = fields["status"].value
        if "due_date" in fields:
            fields["due_date"] = fields["due_date"].isoformat()
        return fields


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str]
    status: str
    due_date: str
    created_by: str
    created_at: str
    updated_at: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            status=project.status,
            due_date=project.due_date,
            created_by=project.created_by,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectSavedResponse(BaseModel):
    message: str
    project: ProjectResponse


class ProjectListResponse(_CamelModel):
    """Response for GET /projects/get-projects (pagination keys in camelCase like tasks)."""

    projects: list[ProjectResponse]
    total: int
    total_pages: int
    current_page: int


class ProjectStatisticsRow(BaseModel):
    status: str
    count: int


class ProjectStatisticsResponse(BaseModel):
    statistics: list[ProjectStatisticsRow]
