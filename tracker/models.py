"""
tracker/models.py -- Domain dataclasses for tasks and projects.

Pure data containers with zero logic. Ownership enforcement lives in
tracker/store.py, where every query carries the owner predicate.

created_by is the principal id of the author. It is set by the store from the
owner argument on insert and is never updatable.
"""

from dataclasses import dataclass
from typing import Optional

TASK_STATUSES = ("pending", "in progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
PROJECT_STATUSES = ("active", "completed")


@dataclass
class Task:
    """A unit of work owned by one principal.

    project_id, when set, references a Project with the same created_by.
    Dates are ISO 8601 strings: due_date is a calendar date (YYYY-MM-DD),
    created_at / updated_at are UTC timestamps set by the store.

    id is None before the record is written to the database.
    """

    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[str] = None
    project_id: Optional[str] = None
    created_by: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Project:
    """A named group of work owned by one principal.

    id is None before the record is written to the database.
    """

    name: str
    due_date: str  # YYYY-MM-DD
    description: Optional[str] = None
    status: str = "active"
    created_by: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
