"""Unit tests for tracker/store.py -- ownership-scoped task and project queries.

Covers:
- create_*() stamps created_by from owner_id, not from the dataclass
- get/update/delete by another owner behave exactly like a missing id
- A task's project_id must name one of the same owner's projects
- Update whitelist: created_by and unknown columns cannot be written
- list_tasks() pagination and filters are applied within the owner's set
- list_projects() search (with LIKE metacharacters), status, date range, sort
- delete_project() detaches the owner's tasks only
- get_project_status_counts() is zero-filled and owner-scoped
"""

import pytest

from core.errors import PROJECT_NOT_FOUND, NotFoundError
from tracker.models import Project, Task
from tracker.store import TrackerStore, _tasks

ANN = "a" * 32
BOB = "b" * 32


@pytest.fixture
def store():
    s = TrackerStore("sqlite:///:memory:")
    yield s
    s.close()


def _project(name: str = "Launch", due_date: str = "2026-12-31", **kwargs) -> Project:
    return Project(name=name, due_date=due_date, **kwargs)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TestTaskOwnership:
    def test_create_stamps_owner(self, store):
        task = store.create_task(Task(title="Write report", created_by=BOB), owner_id=ANN)
        assert task.created_by == ANN
        assert task.id and task.created_at and task.updated_at
        assert task.status == "pending"
        assert task.priority == "medium"

    def test_get_by_other_owner_is_none(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        assert store.get_task(task.id, ANN) is not None
        assert store.get_task(task.id, BOB) is None

    def test_update_by_other_owner_changes_nothing(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        assert store.update_task(task.id, BOB, status="completed") is None
        assert store.get_task(task.id, ANN).status == "pending"

    def test_delete_by_other_owner_changes_nothing(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        assert store.delete_task(task.id, BOB) is False
        assert store.get_task(task.id, ANN) is not None

    def test_missing_id(self, store):
        assert store.get_task("f" * 32, ANN) is None
        assert store.update_task("f" * 32, ANN, title="x") is None
        assert store.delete_task("f" * 32, ANN) is False


class TestTaskUpdate:
    def test_update_returns_new_values(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        updated = store.update_task(task.id, ANN, title="Rewrite report", priority="high")
        assert updated.title == "Rewrite report"
        assert updated.priority == "high"
        assert updated.created_by == ANN

    def test_created_by_not_updatable(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        with pytest.raises(ValueError, match="created_by"):
            store.update_task(task.id, ANN, created_by=BOB)
        assert store.get_task(task.id, ANN).created_by == ANN

    def test_delete(self, store):
        task = store.create_task(Task(title="Write report"), owner_id=ANN)
        assert store.delete_task(task.id, ANN) is True
        assert store.get_task(task.id, ANN) is None
        assert store.delete_task(task.id, ANN) is False


class TestListTasks:
    def test_only_own_tasks_counted(self, store):
        for i in range(3):
            store.create_task(Task(title=f"Ann {i}"), owner_id=ANN)
        store.create_task(Task(title="Bob 0"), owner_id=BOB)

        tasks, total = store.list_tasks(ANN, page=1, limit=10)
        assert total == 3
        assert {t.created_by for t in tasks} == {ANN}

    def test_pages_are_disjoint(self, store):
        for i in range(5):
            store.create_task(Task(title=f"Task {i}"), owner_id=ANN)
        first, total = store.list_tasks(ANN, page=1, limit=2)
        second, _ = store.list_tasks(ANN, page=2, limit=2)
        third, _ = store.list_tasks(ANN, page=3, limit=2)
        assert total == 5
        assert [len(first), len(second), len(third)] == [2, 2, 1]
        ids = [t.id for t in first + second + third]
        assert len(set(ids)) == 5

    def test_page_past_end_is_empty(self, store):
        store.create_task(Task(title="Only"), owner_id=ANN)
        tasks, total = store.list_tasks(ANN, page=5, limit=10)
        assert tasks == []
        assert total == 1

    def test_filters(self, store):
        store.create_task(Task(title="a", status="completed", priority="high"), owner_id=ANN)
        store.create_task(Task(title="b", status="in progress", priority="high"), owner_id=ANN)
        store.create_task(Task(title="c", status="completed", priority="low"), owner_id=ANN)
        store.create_task(Task(title="d", status="completed", priority="high"), owner_id=BOB)

        _, completed = store.list_tasks(ANN, status="completed")
        _, high = store.list_tasks(ANN, priority="high")
        tasks, both = store.list_tasks(ANN, status="completed", priority="high")
        assert (completed, high, both) == (2, 2, 1)
        assert tasks[0].title == "a"

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0)])
    def test_invalid_paging(self, store, page, limit):
        with pytest.raises(ValueError):
            store.list_tasks(ANN, page=page, limit=limit)


class TestTaskProjectReference:
    def test_create_with_own_project(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        task = store.create_task(Task(title="Plan", project_id=project.id), owner_id=ANN)
        assert task.project_id == project.id

    @pytest.mark.parametrize("owner", [BOB, None])
    def test_create_with_foreign_or_missing_project(self, store, owner):
        project_id = store.create_project(_project(), owner_id=owner).id if owner else "f" * 32
        with pytest.raises(NotFoundError) as exc_info:
            store.create_task(Task(title="Sneaky", project_id=project_id), owner_id=ANN)
        assert exc_info.value.message == PROJECT_NOT_FOUND
        assert store.list_tasks(ANN) == ([], 0)

    def test_update_to_foreign_project_changes_nothing(self, store):
        own = store.create_project(_project("Own"), owner_id=ANN)
        foreign = store.create_project(_project("Bob's"), owner_id=BOB)
        task = store.create_task(Task(title="Plan", project_id=own.id), owner_id=ANN)
        with pytest.raises(NotFoundError):
            store.update_task(task.id, ANN, title="Moved", project_id=foreign.id)
        unchanged = store.get_task(task.id, ANN)
        assert (unchanged.title, unchanged.project_id) == ("Plan", own.id)

    def test_update_after_project_deleted(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        task = store.create_task(Task(title="Plan"), owner_id=ANN)
        store.delete_project(project.id, ANN)
        with pytest.raises(NotFoundError):
            store.update_task(task.id, ANN, project_id=project.id)
        assert store.get_task(task.id, ANN).project_id is None

    def test_missing_task_with_own_project_is_none(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        assert store.update_task("f" * 32, ANN, project_id=project.id) is None

    def test_detach_needs_no_project(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        task = store.create_task(Task(title="Plan", project_id=project.id), owner_id=ANN)
        assert store.update_task(task.id, ANN, project_id=None).project_id is None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class TestProjects:
    def test_create_and_get(self, store):
        project = store.create_project(_project(created_by=BOB), owner_id=ANN)
        assert project.created_by == ANN
        assert project.status == "active"
        assert store.get_project(project.id, ANN).name == "Launch"
        assert store.get_project(project.id, BOB) is None

    def test_update_owned_only(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        assert store.update_project(project.id, BOB, status="completed") is None
        updated = store.update_project(project.id, ANN, status="completed")
        assert updated.status == "completed"

    def test_delete_detaches_owner_tasks_only(self, store):
        project = store.create_project(_project(), owner_id=ANN)
        ann_task = store.create_task(Task(title="Ann", project_id=project.id), owner_id=ANN)
        bob_task = store.create_task(Task(title="Bob"), owner_id=BOB)
        # A foreign reference cannot be created through the store; seed one directly.
        with store.engine.connect() as conn:
            conn.execute(_tasks.update().where(_tasks.c.id == bob_task.id).values(project_id=project.id))
            conn.commit()

        assert store.delete_project(project.id, BOB) is False
        assert store.delete_project(project.id, ANN) is True

        assert store.get_project(project.id, ANN) is None
        assert store.get_task(ann_task.id, ANN).project_id is None
        assert store.get_task(bob_task.id, BOB).project_id == project.id

    def test_status_counts_zero_filled(self, store):
        assert store.get_project_status_counts(ANN) == {"active": 0, "completed": 0}

    def test_status_counts_owner_scoped(self, store):
        store.create_project(_project("One"), owner_id=ANN)
        store.create_project(_project("Two"), owner_id=ANN)
        store.create_project(_project("Three", status="completed"), owner_id=ANN)
        store.create_project(_project("Bob's", status="completed"), owner_id=BOB)
        assert store.get_project_status_counts(ANN) == {"active": 2, "completed": 1}


class TestListProjects:
    @pytest.fixture
    def seeded(self, store):
        store.create_project(_project("Alpha launch", "2026-03-01"), owner_id=ANN)
        store.create_project(_project("beta rollout", "2026-06-15", status="completed"), owner_id=ANN)
        store.create_project(_project("ALPHA review", "2026-09-30"), owner_id=ANN)
        store.create_project(_project("100% coverage", "2026-10-01"), owner_id=ANN)
        store.create_project(_project("Alpha (Bob)", "2026-03-01"), owner_id=BOB)
        return store

    def test_search_case_insensitive(self, seeded):
        projects, total = seeded.list_projects(ANN, search="alpha")
        assert total == 2
        assert {p.name for p in projects} == {"Alpha launch", "ALPHA review"}

    def test_search_treats_wildcards_literally(self, seeded):
        projects, total = seeded.list_projects(ANN, search="%")
        assert total == 1
        assert projects[0].name == "100% coverage"

    def test_status_filter(self, seeded):
        _, total = seeded.list_projects(ANN, status="completed")
        assert total == 1

    def test_date_range_inclusive(self, seeded):
        projects, total = seeded.list_projects(ANN, due_from="2026-03-01", due_to="2026-09-30")
        assert total == 3
        assert "100% coverage" not in {p.name for p in projects}

    def test_sort_by_due_date(self, seeded):
        projects, _ = seeded.list_projects(ANN, sort_by="due_date", descending=False)
        assert [p.due_date for p in projects] == ["2026-03-01", "2026-06-15", "2026-09-30", "2026-10-01"]

    def test_pagination(self, seeded):
        page_one, total = seeded.list_projects(ANN, page=1, limit=3, sort_by="due_date", descending=True)
        page_two, _ = seeded.list_projects(ANN, page=2, limit=3, sort_by="due_date", descending=True)
        assert total == 4
        assert len(page_one) == 3
        assert [p.name for p in page_two] == ["Alpha launch"]

    def test_unknown_sort_column(self, store):
        with pytest.raises(ValueError):
            store.list_projects(ANN, sort_by="created_by")
