"""
In-memory registry of long-running repository tasks (clone, fetch, push).

Lifecycle:

    waiting -> running -> succeeded
       |          |
       |          +----> failed
       +---------------> failed   (worker could not start)

Terminal states: succeeded, failed. A terminal record never changes again;
it is evicted once it has been terminal for longer than the retention window,
after which its id is indistinguishable from one that never existed.
"""

import asyncio
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable
from uuid import uuid4

from repogate.config import get_settings
from repogate.errors import CANCELLED, ENGINE_FAILURE, GatewayError, NotFoundError, RejectedError

logger = logging.getLogger(__name__)


class TaskKind(str, Enum):
    CLONE = "clone"
    FETCH = "fetch"
    PUSH = "push"


class TaskState(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


VALID_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.WAITING: {TaskState.RUNNING, TaskState.FAILED},
    TaskState.RUNNING: {TaskState.SUCCEEDED, TaskState.FAILED},
    # Terminal states - no valid outgoing transitions
    TaskState.SUCCEEDED: set(),
    TaskState.FAILED: set(),
}

TERMINAL_STATES: set[TaskState] = {TaskState.SUCCEEDED, TaskState.FAILED}

# Work returns the location of the resource the task produced or updated
TaskWork = Callable[[], Awaitable[str]]

# Record of the task whose worker runs in the current context
_current_record: ContextVar["TaskRecord | None"] = ContextVar("current_task_record", default=None)


@dataclass
class TaskError:
    reason: str
    message: str


@dataclass
class TaskRecord:
    id: str
    kind: TaskKind
    state: TaskState = TaskState.WAITING
    result_location: str | None = None
    error: TaskError | None = None
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: float | None = None  # monotonic clock, drives retention

    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition_to(self, new_state: TaskState) -> bool:
        """Move to ``new_state`` if the transition table allows it."""
        if new_state not in VALID_TRANSITIONS[self.state]:
            return False
        self.state = new_state
        if new_state in TERMINAL_STATES:
            self.finished_at = time.monotonic()
        return True


class TaskRegistry:
    def __init__(self, retention_seconds: float = 300.0):
        self.retention_seconds = retention_seconds
        self._tasks: dict[str, TaskRecord] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def submit(self, kind: TaskKind, work: TaskWork) -> str:
        """Register a task and schedule its work without waiting for it."""
        self.sweep()
        record = TaskRecord(id=str(uuid4()), kind=TaskKind(kind))
        self._tasks[record.id] = record
        self._workers[record.id] = asyncio.get_running_loop().create_task(self._run(record, work))
        logger.info(f"Submitted {record.kind.value} task {record.id[:8]}")
        return record.id

    async def _run(self, record: TaskRecord, work: TaskWork) -> None:
        _current_record.set(record)
        record.transition_to(TaskState.RUNNING)
        try:
            location = await work()
        except asyncio.CancelledError:
            record.error = TaskError(ENGINE_FAILURE, "Task was interrupted before completion")
            record.transition_to(TaskState.FAILED)
            raise
        except GatewayError as e:
            record.error = TaskError(e.reason, e.message)
            record.transition_to(TaskState.FAILED)
            logger.warning(f"Task {record.id[:8]} failed ({e.reason}): {e.message}")
        except Exception as e:
            logger.exception(f"Task {record.id[:8]} failed unexpectedly")
            record.error = TaskError(ENGINE_FAILURE, f"{type(e).__name__}: {e}")
            record.transition_to(TaskState.FAILED)
        else:
            record.result_location = location
            record.transition_to(TaskState.SUCCEEDED)
            logger.info(f"Task {record.id[:8]} succeeded -> {location}")
        finally:
            self._workers.pop(record.id, None)

    def poll(self, task_id: str) -> TaskRecord:
        """Current record for ``task_id``; NotFound for unknown or evicted ids."""
        self.sweep()
        record = self._tasks.get(task_id)
        if record is None:
            raise NotFoundError(f"Task {task_id} not found")
        return record

    def cancel(self, task_id: str) -> bool:
        """
        Best-effort cancellation.

        Waiting tasks are removed before they run. Running tasks are flagged:
        work that has not reached the engine yet stops at its next
        ``checkpoint()``, otherwise the task completes with whatever outcome
        the engine produces.
        Terminal tasks are left untouched and False is returned.
        """
        record = self.poll(task_id)
        if record.is_terminal():
            return False
        if record.state == TaskState.WAITING:
            worker = self._workers.pop(task_id, None)
            if worker is not None:
                worker.cancel()
            del self._tasks[task_id]
            logger.info(f"Cancelled waiting task {task_id[:8]}")
            return True
        record.cancel_requested = True
        logger.info(f"Cancellation requested for running task {task_id[:8]}")
        return True

    def sweep(self) -> int:
        """Evict terminal tasks older than the retention window. Returns the count evicted."""
        cutoff = time.monotonic() - self.retention_seconds
        expired = [
            task_id for task_id, record in self._tasks.items()
            if record.is_terminal() and record.finished_at is not None and record.finished_at <= cutoff
        ]
        for task_id in expired:
            del self._tasks[task_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} finished task(s)")
        return len(expired)

    async def shutdown(self) -> None:
        """Cancel outstanding workers (application shutdown)."""
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()

    @property
    def task_count(self) -> int:
        return len(self._tasks)


def checkpoint() -> None:
    """
    Stop the current task's work if cancellation was requested.

    Task work calls this right before it touches the repository. Outside a
    task worker it does nothing.
    """
    record = _current_record.get()
    if record is not None and record.cancel_requested:
        raise RejectedError(f"Task {record.id[:8]} was cancelled before it changed anything", CANCELLED)


# Global task registry instance
task_registry = TaskRegistry(retention_seconds=get_settings().task_retention_seconds)
