"""
Repository gateway - runs engine operations under per-repository locks.

Synchronous commands block the calling request until the engine returns (the
blocking dulwich call runs in the threadpool). Network commands are handed to
the task registry and return a task id immediately; their worker takes the
same repository lock before touching refs.
"""

import asyncio
import logging
import re
from pathlib import Path

from fastapi.concurrency import run_in_threadpool

from repogate.config import Settings, get_settings
from repogate.errors import MalformedError, RejectedError, REPOSITORY_BUSY, TARGET_EXISTS
from repogate.services.engine import GitEngine, MergeOutcome, MergeStatus, RemoteBranchInfo, RemoteInfo, RepositoryHandle
from repogate.services.locking import LockTimeoutError, LockType, RepositoryLockManager, repository_locks
from repogate.services.status import StatusReport, compute_status
from repogate.services.task_registry import TaskKind, TaskRegistry, checkpoint, task_registry

logger = logging.getLogger(__name__)

CLONE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Resource locations handed back to clients
PROJECT_LOCATION = "/api/projects/{project_id}"
CLONE_LOCATION = "/api/git/clone/{clone_id}"
TASK_LOCATION = "/api/tasks/{task_id}"
REMOTE_LOCATION = "/api/projects/{project_id}/git/remote/{remote}"
REMOTE_BRANCH_LOCATION = "/api/projects/{project_id}/git/remote/{remote}/{branch}"
COMMIT_LOCATION = "/api/projects/{project_id}/git/commit/{ref}"
FILE_LOCATION = "/api/projects/{project_id}/file/{path}"


def clone_name_from_url(url: str) -> str:
    """Derive a clone directory name from a repository URL or path."""
    name = url.rstrip("/").replace("\\", "/").rsplit("/", 1)[-1]
    name = name.rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name


class RepositoryGateway:
    def __init__(
        self,
        engine: GitEngine | None = None,
        locks: RepositoryLockManager | None = None,
        tasks: TaskRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or GitEngine(committer=self.settings.committer)
        self.locks = locks or repository_locks
        self.tasks = tasks or task_registry

    # -------------------------------------------------------------------------
    # Serialization helpers
    # -------------------------------------------------------------------------

    async def _read(self, handle: RepositoryHandle, reason: str, func, *args):
        async with self.locks.lock(handle.key, LockType.SHARED, timeout=None, reason=reason):
            return await run_in_threadpool(func, *args)

    async def _mutate(self, handle: RepositoryHandle, reason: str, func, *args):
        try:
            async with self.locks.lock(
                handle.key, LockType.EXCLUSIVE, timeout=self.settings.mutation_lock_timeout, reason=reason,
            ):
                return await run_in_threadpool(func, *args)
        except LockTimeoutError:
            raise RejectedError(
                f"Repository is busy with another operation; {reason} was not applied",
                REPOSITORY_BUSY,
            )

    # -------------------------------------------------------------------------
    # Synchronous commands
    # -------------------------------------------------------------------------

    async def status(self, handle: RepositoryHandle) -> StatusReport:
        return await self._read(handle, "status", compute_status, self.engine, handle)

    async def stage_all(self, handle: RepositoryHandle) -> list[str]:
        return await self._mutate(handle, "stage", self.engine.stage_all, handle)

    async def commit(self, handle: RepositoryHandle, message: str, amend: bool = False) -> str:
        return await self._mutate(handle, "commit", self.engine.commit, handle, message, amend)

    def _merge_and_report(self, handle: RepositoryHandle, ref: str) -> tuple[MergeOutcome, StatusReport | None]:
        outcome = self.engine.merge(handle, ref)
        if outcome.status != MergeStatus.CONFLICTED:
            return outcome, None
        return outcome, compute_status(self.engine, handle)

    async def merge(self, handle: RepositoryHandle, ref: str) -> tuple[MergeOutcome, StatusReport | None]:
        """Merge ``ref``; a conflicted outcome comes with the status taken under the same lock."""
        return await self._mutate(handle, "merge", self._merge_and_report, handle, ref)

    async def head(self, handle: RepositoryHandle) -> tuple[str | None, str | None]:
        return await self._read(handle, "read head", self.engine.head, handle)

    async def checkout(self, handle: RepositoryHandle, branch: str) -> str:
        return await self._mutate(handle, "checkout", self.engine.checkout, handle, branch)

    async def log(self, handle: RepositoryHandle, ref: str, max_count: int) -> list[dict]:
        return await self._read(handle, "log", self.engine.log, handle, ref, max_count)

    async def list_remotes(self, handle: RepositoryHandle) -> list[RemoteInfo]:
        return await self._read(handle, "list remotes", self.engine.list_remotes, handle)

    async def get_remote(self, handle: RepositoryHandle, remote: str) -> RemoteInfo:
        return await self._read(handle, "read remote", self.engine.get_remote, handle, remote)

    async def list_branches(self, handle: RepositoryHandle, remote: str) -> list[RemoteBranchInfo]:
        return await self._read(handle, "list branches", self.engine.list_remote_branches, handle, remote)

    async def get_branch(self, handle: RepositoryHandle, remote: str, branch: str) -> RemoteBranchInfo:
        return await self._read(handle, "read branch", self.engine.get_remote_branch, handle, remote, branch)

    async def read_file(self, handle: RepositoryHandle, path: str) -> bytes:
        return await self._read(handle, "read file", self.engine.read_file, handle, path)

    async def write_file(self, handle: RepositoryHandle, path: str, data: bytes) -> None:
        await self._mutate(handle, "write file", self.engine.write_file, handle, path, data)

    # -------------------------------------------------------------------------
    # Task-backed commands
    # -------------------------------------------------------------------------

    def clone_path(self, clone_id: str) -> Path:
        return Path(self.settings.clone_root) / clone_id

    def submit_clone(self, url: str, name: str | None = None) -> str:
        """Validate the target synchronously, then clone in a task. Returns the task id."""
        clone_id = name or clone_name_from_url(url)
        if not clone_id or not CLONE_NAME_PATTERN.match(clone_id):
            raise MalformedError(f"Invalid clone name: {clone_id!r}")
        target = self.clone_path(clone_id)
        if target.exists():
            raise RejectedError(f"A clone named '{clone_id}' already exists", TARGET_EXISTS)
        target.parent.mkdir(parents=True, exist_ok=True)

        async def work() -> str:
            await asyncio.to_thread(self.engine.clone, url, target)
            return CLONE_LOCATION.format(clone_id=clone_id)

        return self.tasks.submit(TaskKind.CLONE, work)

    def submit_fetch(self, handle: RepositoryHandle, remote: str) -> str:
        async def work() -> str:
            await self._mutate_in_task(handle, "fetch", self.engine.fetch, handle, remote)
            return REMOTE_LOCATION.format(project_id=handle.project_id, remote=remote)

        return self.tasks.submit(TaskKind.FETCH, work)

    def submit_push(self, handle: RepositoryHandle, remote: str, branch: str, src_ref: str = "HEAD",
                    force: bool = False) -> str:
        async def work() -> str:
            await self._mutate_in_task(handle, "push", self.engine.push, handle, remote, branch, src_ref, force)
            return REMOTE_BRANCH_LOCATION.format(project_id=handle.project_id, remote=remote, branch=branch)

        return self.tasks.submit(TaskKind.PUSH, work)

    async def _mutate_in_task(self, handle: RepositoryHandle, reason: str, func, *args):
        # Task workers queue behind other mutations instead of rejecting
        async with self.locks.lock(handle.key, LockType.EXCLUSIVE, timeout=None, reason=reason):
            checkpoint()
            return await asyncio.to_thread(func, *args)


# Global gateway instance
gateway = RepositoryGateway()
