"""
Tests for RepositoryGateway serialization.

These tests verify:
- Concurrent commands against one repository run one at a time
- A mutation that cannot get its repository in time is rejected as busy
- A conflicted merge reports the status it left behind
- A queued push that was cancelled never reaches the remote
"""
import asyncio
import sys
from pathlib import Path

import pytest

# Add backend and tdd to path for imports
backend_path = Path(__file__).parent.parent.parent / "backend"
tdd_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))
sys.path.insert(0, str(tdd_path))

from repogate.errors import CANCELLED, REPOSITORY_BUSY, RejectedError
from repogate.services.engine import MergeStatus, RepositoryHandle
from repogate.services.locking import LockType
from repogate.services.task_registry import TaskState

from shared.git_helpers import bare_origin, branch_commit, clone_of, commit_files, diverged_repository


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def gateway(clean_gateway):
    return clean_gateway


@pytest.fixture
def handle(work_repo) -> RepositoryHandle:
    return RepositoryHandle("project-1", work_repo)


@pytest.fixture
def short_lock_timeout(gateway, monkeypatch):
    monkeypatch.setattr(
        gateway, "settings", gateway.settings.model_copy(update={"mutation_lock_timeout": 0.1}),
    )


async def finish(gateway, task_id: str):
    worker = gateway.tasks._workers.get(task_id)
    if worker is not None:
        await asyncio.gather(worker, return_exceptions=True)
    return gateway.tasks.poll(task_id)


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------

class TestConcurrentCommands:
    """Commands issued together against one repository."""

    async def test_stage_commit_and_status_together(self, gateway, handle, work_repo):
        (work_repo / "new.txt").write_text("new\n")

        staged, commit_id, report = await asyncio.gather(
            gateway.stage_all(handle),
            gateway.commit(handle, "Add new"),
            gateway.status(handle),
        )

        assert staged == ["new.txt"]
        assert branch_commit(work_repo, "master") == commit_id
        # Status ran either before or after the commit, never in between
        assert report.is_clean() or report.paths("added") == ["new.txt"]
        assert (await gateway.status(handle)).is_clean()
        assert handle.key not in gateway.locks._states

    async def test_many_writes_all_land(self, gateway, handle, work_repo):
        names = [f"file{i}.txt" for i in range(10)]
        await asyncio.gather(*(gateway.write_file(handle, name, name.encode()) for name in names))

        report = await gateway.status(handle)
        assert report.paths("untracked") == sorted(names)
        for name in names:
            assert (work_repo / name).read_text() == name


class TestRepositoryBusy:
    """A mutation waits at most mutation_lock_timeout for its repository."""

    async def test_mutation_rejected_while_repository_held(self, gateway, handle, work_repo, short_lock_timeout):
        (work_repo / "new.txt").write_text("new\n")
        held = await gateway.locks.acquire(handle.key, LockType.EXCLUSIVE, reason="held by test")
        try:
            with pytest.raises(RejectedError) as exc_info:
                await gateway.stage_all(handle)
            assert exc_info.value.reason == REPOSITORY_BUSY
        finally:
            await gateway.locks.release(held)

        report = await gateway.status(handle)
        assert report.paths("untracked") == ["new.txt"]

    async def test_mutation_proceeds_once_released(self, gateway, handle, work_repo, short_lock_timeout):
        (work_repo / "new.txt").write_text("new\n")
        held = await gateway.locks.acquire(handle.key, LockType.EXCLUSIVE)
        staging = asyncio.create_task(gateway.stage_all(handle))
        await asyncio.sleep(0.01)
        await gateway.locks.release(held)

        assert await staging == ["new.txt"]

    async def test_reads_wait_instead_of_failing(self, gateway, handle, short_lock_timeout):
        held = await gateway.locks.acquire(handle.key, LockType.EXCLUSIVE)
        reading = asyncio.create_task(gateway.status(handle))
        await asyncio.sleep(0.2)
        assert not reading.done()
        await gateway.locks.release(held)

        assert (await reading).is_clean()


# -----------------------------------------------------------------------------
# Merge
# -----------------------------------------------------------------------------

class TestMerge:
    """Tests for merge() through the gateway."""

    async def test_conflicted_merge_reports_status(self, gateway, temp_dir):
        handle = RepositoryHandle("p", diverged_repository(temp_dir / "diverged"))

        outcome, report = await gateway.merge(handle, "feature")

        assert outcome.status == MergeStatus.CONFLICTED
        assert outcome.conflicts == ["conflict.txt"]
        assert report.paths("added") == ["conflict.txt"]

    async def test_clean_merge_has_no_report(self, gateway, handle, work_repo):
        outcome, report = await gateway.merge(handle, "master")

        assert outcome.status == MergeStatus.ALREADY_UP_TO_DATE
        assert report is None


# -----------------------------------------------------------------------------
# Cancellation
# -----------------------------------------------------------------------------

class TestCancelQueuedPush:
    """A push queued behind another operation honours a cancel request."""

    async def test_cancelled_push_leaves_remote_alone(self, gateway, work_repo, temp_dir):
        origin = bare_origin(work_repo, temp_dir / "origin.git")
        clone = RepositoryHandle("clone", clone_of(origin, temp_dir / "clone"))
        before = branch_commit(origin, "master")
        commit_files(clone.path, {"pushed.txt": "pushed\n"}, "Pushed")

        held = await gateway.locks.acquire(clone.key, LockType.EXCLUSIVE)
        task_id = gateway.submit_push(clone, "origin", "master")
        await asyncio.sleep(0)
        assert gateway.tasks.poll(task_id).state == TaskState.RUNNING
        assert gateway.tasks.cancel(task_id) is True
        await gateway.locks.release(held)

        record = await finish(gateway, task_id)
        assert record.state == TaskState.FAILED
        assert record.error.reason == CANCELLED
        assert branch_commit(origin, "master") == before

    async def test_uncancelled_push_runs_after_wait(self, gateway, work_repo, temp_dir):
        origin = bare_origin(work_repo, temp_dir / "origin.git")
        clone = RepositoryHandle("clone", clone_of(origin, temp_dir / "clone"))
        pushed = commit_files(clone.path, {"pushed.txt": "pushed\n"}, "Pushed")

        held = await gateway.locks.acquire(clone.key, LockType.EXCLUSIVE)
        task_id = gateway.submit_push(clone, "origin", "master")
        await asyncio.sleep(0)
        await gateway.locks.release(held)

        record = await finish(gateway, task_id)
        assert record.state == TaskState.SUCCEEDED
        assert branch_commit(origin, "master") == pushed
