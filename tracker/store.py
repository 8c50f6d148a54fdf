"""
tracker/store.py -- Ownership-scoped persistence for tasks and projects.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tracker/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TrackerStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Ownership:
  Every public method takes owner_id, and every statement it issues carries
  created_by = owner_id in its WHERE clause. There is no method that reads,
  updates or deletes by id alone. A record owned by someone else therefore
  looks exactly like a record that does not exist (None / False), and the
  check cannot race with a concurrent request because it is part of the same
  statement as the read or write.

  On insert, created_by comes from the owner_id argument and overrides
  whatever the dataclass carries.

  A task's project_id must name a project owned by the same owner. The
  EXISTS test is part of the INSERT or UPDATE statement that writes the
  reference, so a concurrent project delete cannot leave it dangling.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TrackerStore("sqlite:///./tasktracker.db")
    task = store.create_task(Task(title="Write report"), owner_id=principal.id)
    page, total = store.list_tasks(principal.id, page=1, limit=10)
    store.update_task(task.id, principal.id, status="completed")
    store.close()
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event, exists, func, literal, select
from sqlalchemy.engine import Engine

from core.errors import PROJECT_NOT_FOUND, NotFoundError
from tracker.models import PROJECT_STATUSES, Project, Task

logger = logging.getLogger("tasktracker.tracker")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("due_date", String(10)),  # YYYY-MM-DD
    Column("project_id", String(32)),
    Column("created_by", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_tasks_created_by", "created_by"),
)

_projects = Table(
    "projects",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("due_date", String(10), nullable=False),  # YYYY-MM-DD
    Column("created_by", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_projects_created_by", "created_by"),
)

# Columns a caller may change. id and created_by are never in these sets.
_TASK_MUTABLE = frozenset({"title", "description", "status", "priority", "due_date", "project_id"})
_PROJECT_MUTABLE = frozenset({"name", "description", "status", "due_date"})

PROJECT_SORT_COLUMNS = ("created_at", "name", "due_date", "status")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _owned(table: Table, record_id: str, owner_id: str):
    """WHERE clause shared by every single-record operation."""
    return (table.c.id == record_id) & (table.c.created_by == owner_id)


def _owned_project_exists(project_id: str, owner_id: str):
    return exists().where(_owned(_projects, project_id, owner_id))


def _check_page(page: int, limit: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 1:
        raise ValueError("limit must be >= 1")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TrackerStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a threadpool, so one pooled
            # connection may be used from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Owner-scoped primitives
    # ------------------------------------------------------------------

    def _get_owned(self, table: Table, record_id: str, owner_id: str):
        with self.engine.connect() as conn:
            return conn.execute(table.select().where(_owned(table, record_id, owner_id))).fetchone()

    def _update_owned(
        self, table: Table, mutable: frozenset, record_id: str, owner_id: str, fields: dict, guard=None
    ) -> bool:
        """Apply fields to the record if and only if owner_id owns it (and guard holds).

        Unknown keys raise ValueError rather than being silently dropped --
        in particular an attempt to reassign created_by fails loudly.
        Returns False when no row matched (missing or not owned).
        """
        unknown = set(fields) - mutable
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
        values = dict(fields, updated_at=_now_iso())
        where = _owned(table, record_id, owner_id)
        if guard is not None:
            where = where & guard
        with self.engine.connect() as conn:
            result = conn.execute(table.update().where(where).values(**values))
            conn.commit()
        return result.rowcount > 0

    def _delete_owned(self, table: Table, record_id: str, owner_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(table.delete().where(_owned(table, record_id, owner_id)))
            conn.commit()
        return result.rowcount > 0

    def _page(self, table: Table, where, order_by: list, page: int, limit: int) -> tuple[list, int]:
        """Run a filtered, paginated select and a count over the same filter."""
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(table).where(where)).scalar() or 0
            rows = conn.execute(
                table.select().where(where).order_by(*order_by).limit(limit).offset((page - 1) * limit)
            ).fetchall()
        return rows, total

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, task: Task, owner_id: str) -> Task:
        """Insert a task owned by owner_id and return the stored record.

        Raises NotFoundError(PROJECT_NOT_FOUND) if task.project_id is set and
        does not name one of owner_id's projects; nothing is inserted then.
        """
        task_id = uuid.uuid4().hex
        now = _now_iso()
        values = {
            "id": task_id,
            "title": task.title,
            "description": task.description,
            "status": task.status,
            "priority": task.priority,
            "due_date": task.due_date,
            "project_id": task.project_id,
            "created_by": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        if task.project_id is None:
            stmt = _tasks.insert().values(**values)
        else:
            # INSERT ... SELECT <values> WHERE EXISTS (owned project)
            row = select(*[literal(v, type_=_tasks.c[k].type).label(k) for k, v in values.items()]).where(
                _owned_project_exists(task.project_id, owner_id)
            )
            stmt = _tasks.insert().from_select(list(values), row)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError(PROJECT_NOT_FOUND)
        logger.info("Task created: id=%s owner=%s", task_id, owner_id)
        return self.get_task(task_id, owner_id)

    def get_task(self, task_id: str, owner_id: str) -> Optional[Task]:
        """Fetch a task by id if owner_id owns it. Returns None otherwise."""
        row = self._get_owned(_tasks, task_id, owner_id)
        return _row_to_task(row) if row is not None else None

    def list_tasks(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> tuple[list[Task], int]:
        """Return one page of owner_id's tasks (newest first) and the filtered total."""
        _check_page(page, limit)
        where = _tasks.c.created_by == owner_id
        if status is not None:
            where = where & (_tasks.c.status == status)
        if priority is not None:
            where = where & (_tasks.c.priority == priority)
        rows, total = self._page(_tasks, where, [_tasks.c.created_at.desc(), _tasks.c.id], page, limit)
        return [_row_to_task(r) for r in rows], total

    def update_task(self, task_id: str, owner_id: str, **fields) -> Optional[Task]:
        """Update mutable fields of an owned task and return the updated record.

        Accepted fields: title, description, status, priority, due_date,
        project_id. Returns None if the task does not exist or is not owned.
        Raises NotFoundError(PROJECT_NOT_FOUND) if a non-null project_id does
        not name one of owner_id's projects; the task is left unchanged.
        """
        project_id = fields.get("project_id")
        guard = _owned_project_exists(project_id, owner_id) if project_id is not None else None
        if not self._update_owned(_tasks, _TASK_MUTABLE, task_id, owner_id, fields, guard=guard):
            if guard is not None and self.get_project(project_id, owner_id) is None:
                raise NotFoundError(PROJECT_NOT_FOUND)
            return None
        return self.get_task(task_id, owner_id)

    def delete_task(self, task_id: str, owner_id: str) -> bool:
        """Delete an owned task. Returns False if nothing matched."""
        deleted = self._delete_owned(_tasks, task_id, owner_id)
        if deleted:
            logger.info("Task deleted: id=%s owner=%s", task_id, owner_id)
        return deleted

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project, owner_id: str) -> Project:
        """Insert a project owned by owner_id and return the stored record."""
        project_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _projects.insert().values(
                    id=project_id,
                    name=project.name,
                    description=project.description,
                    status=project.status,
                    due_date=project.due_date,
                    created_by=owner_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        logger.info("Project created: id=%s owner=%s", project_id, owner_id)
        return self.get_project(project_id, owner_id)

    def get_project(self, project_id: str, owner_id: str) -> Optional[Project]:
        """Fetch a project by id if owner_id owns it. Returns None otherwise."""
        row = self._get_owned(_projects, project_id, owner_id)
        return _row_to_project(row) if row is not None else None

    def list_projects(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        due_from: Optional[str] = None,
        due_to: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Project], int]:
        """Return one page of owner_id's projects and the filtered total.

        search is a case-insensitive substring match on name. due_from/due_to
        are inclusive YYYY-MM-DD bounds on due_date (lexicographic order of ISO
        dates equals chronological order). sort_by must be one of
        PROJECT_SORT_COLUMNS.
        """
        _check_page(page, limit)
        if sort_by not in PROJECT_SORT_COLUMNS:
            raise ValueError(f"Unknown sort column: {sort_by!r}")
        where = _projects.c.created_by == owner_id
        if search:
            where = where & _projects.c.name.ilike(f"%{_escape_like(search)}%", escape="\\")
        if status is not None:
            where = where & (_projects.c.status == status)
        if due_from:
            where = where & (_projects.c.due_date >= due_from)
        if due_to:
            where = where & (_projects.c.due_date <= due_to)
        column = _projects.c[sort_by]
        order = [column.desc() if descending else column.asc(), _projects.c.id]
        rows, total = self._page(_projects, where, order, page, limit)
        return [_row_to_project(r) for r in rows], total

    def update_project(self, project_id: str, owner_id: str, **fields) -> Optional[Project]:
        """Update mutable fields of an owned project; None if missing or not owned."""
        if not self._update_owned(_projects, _PROJECT_MUTABLE, project_id, owner_id, fields):
            return None
        return self.get_project(project_id, owner_id)

    def delete_project(self, project_id: str, owner_id: str) -> bool:
        """Delete an owned project and detach owner_id's tasks from it.

        Both statements run in one transaction and both carry the owner
        predicate, so another principal's tasks are never touched.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_projects.delete().where(_owned(_projects, project_id, owner_id)))
            if result.rowcount > 0:
                conn.execute(
                    _tasks.update()
                    .where((_tasks.c.project_id == project_id) & (_tasks.c.created_by == owner_id))
                    .values(project_id=None, updated_at=_now_iso())
                )
            conn.commit()
        if result.rowcount > 0:
            logger.info("Project deleted: id=%s owner=%s", project_id, owner_id)
            return True
        return False

    def get_project_status_counts(self, owner_id: str) -> dict[str, int]:
        """Return {status: count} over owner_id's projects, zero-filled for every status."""
        stmt = (
            select(_projects.c.status, func.count().label("n"))
            .where(_projects.c.created_by == owner_id)
            .group_by(_projects.c.status)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        counts = {status: 0 for status in PROJECT_STATUSES}
        for row in rows:
            counts[row.status] = row.n
        return counts

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status=row.status,
        priority=row.priority,
        due_date=row.due_date,
        project_id=row.project_id,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        description=row.description,
        status=row.status,
        due_date=row.due_date,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
