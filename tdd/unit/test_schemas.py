"""
Unit tests for response schemas.

Tests cover:
- Task shapes discriminated by state
- Status report rendering with file locations
- Project git links
- Commit request defaults
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add backend and tdd to path for imports
backend_path = Path(__file__).parent.parent.parent / "backend"
tdd_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))
sys.path.insert(0, str(tdd_path))

from repogate.schemas import CommitRequest, ProjectRead, StatusRead, task_to_read
from repogate.schemas.task import FailedTaskRead, SucceededTaskRead, WaitingTaskRead, task_adapter
from repogate.services.status import PathEntry, StatusReport
from repogate.services.task_registry import TaskError, TaskKind, TaskRecord, TaskState

from shared.factories import ProjectFactory


def record(state: TaskState, **kwargs) -> TaskRecord:
    return TaskRecord(id="0f9c2a36-1111-2222-3333-444455556666", kind=TaskKind.CLONE, state=state, **kwargs)


# -----------------------------------------------------------------------------
# Task schemas
# -----------------------------------------------------------------------------

class TestTaskRead:
    """Tests for task_to_read() and the discriminated TaskRead union."""

    def test_waiting_task_has_no_location_or_error(self):
        data = task_to_read(record(TaskState.WAITING)).model_dump()
        assert data["state"] == "waiting"
        assert "location" not in data
        assert "error" not in data

    def test_task_location_points_at_task(self):
        data = task_to_read(record(TaskState.RUNNING)).model_dump()
        assert data["task_location"] == "/api/tasks/0f9c2a36-1111-2222-3333-444455556666"

    def test_succeeded_task_has_location(self):
        read = task_to_read(record(TaskState.SUCCEEDED, result_location="/api/git/clone/demo"))
        assert isinstance(read, SucceededTaskRead)
        assert read.location == "/api/git/clone/demo"

    def test_failed_task_has_error(self):
        read = task_to_read(record(TaskState.FAILED, error=TaskError("network_failure", "unreachable")))
        assert isinstance(read, FailedTaskRead)
        assert read.error.reason == "network_failure"
        assert "location" not in read.model_dump()

    def test_adapter_selects_shape_by_state(self):
        parsed = task_adapter.validate_python({
            "id": "t1",
            "kind": "fetch",
            "state": "waiting",
            "created_at": datetime.utcnow(),
            "task_location": "/api/tasks/t1",
        })
        assert isinstance(parsed, WaitingTaskRead)

    def test_adapter_rejects_succeeded_without_location(self):
        with pytest.raises(ValidationError):
            task_adapter.validate_python({
                "id": "t1",
                "kind": "push",
                "state": "succeeded",
                "created_at": datetime.utcnow(),
                "task_location": "/api/tasks/t1",
            })


# -----------------------------------------------------------------------------
# Status schema
# -----------------------------------------------------------------------------

class TestStatusRead:
    """Tests for StatusRead.from_report()."""

    def test_all_categories_present_when_clean(self):
        data = StatusRead.from_report("p1", StatusReport()).model_dump()
        assert set(data) == {"added", "changed", "missing", "modified", "removed", "untracked"}
        assert all(value == [] for value in data.values())

    def test_entry_has_name_path_and_location(self):
        report = StatusReport(modified=[PathEntry("src/app.py", "ab" * 20)])
        entry = StatusRead.from_report("p1", report).modified[0]
        assert entry.name == "app.py"
        assert entry.path == "src/app.py"
        assert entry.id == "ab" * 20
        assert entry.location == "/api/projects/p1/file/src/app.py"


# -----------------------------------------------------------------------------
# Project schema
# -----------------------------------------------------------------------------

class TestProjectRead:
    """Tests for ProjectRead.from_project()."""

    def test_git_links_derived_from_project_location(self):
        project = ProjectFactory.build()
        read = ProjectRead.from_project(project)
        base = f"/api/projects/{project.id}"
        assert read.location == base
        assert read.git.status == f"{base}/git/status"
        assert read.git.remote == f"{base}/git/remote"
        assert read.content_location == project.content_location


class TestCommitRequest:
    """Tests for CommitRequest defaults."""

    def test_defaults(self):
        body = CommitRequest(message="msg")
        assert body.amend is False
        assert body.merge is None

    def test_merge_only(self):
        body = CommitRequest(merge="feature")
        assert body.message is None
