"""
Repository Locking

Serializes access to a repository's shared working tree and index:
- EXCLUSIVE locks for mutations (stage, commit, merge, checkout, file writes,
  fetch/push ref updates) - one holder at a time
- SHARED locks for reads (status, listings, log, file reads) - many holders,
  blocked while a mutation is in flight
- Locks are keyed by repository, so different repositories never contend

Per-repository bookkeeping exists only while the repository has holders or
waiters; linking and unlinking projects does not grow the manager.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from time import monotonic

logger = logging.getLogger(__name__)


class LockType(str, Enum):
    """Types of repository locks."""
    EXCLUSIVE = "exclusive"
    SHARED = "shared"


class LockTimeoutError(Exception):
    """Raised when lock acquisition times out."""
    pass


@dataclass(eq=False)
class RepositoryLock:
    """A held lock on one repository. Release it exactly once."""
    repository_key: str
    lock_type: LockType
    reason: str = ""
    acquired_at: float = field(default_factory=monotonic)
    released: bool = False


class _RepositoryState:
    """Holders and waiters of one repository's lock."""

    def __init__(self):
        self.condition = asyncio.Condition()
        self.readers = 0
        self.writer = False
        self.waiting = 0

    def available(self, lock_type: LockType) -> bool:
        if lock_type == LockType.EXCLUSIVE:
            return not self.writer and self.readers == 0
        return not self.writer

    def hold(self, lock_type: LockType) -> None:
        if lock_type == LockType.EXCLUSIVE:
            self.writer = True
        else:
            self.readers += 1

    def drop(self, lock_type: LockType) -> None:
        if lock_type == LockType.EXCLUSIVE:
            self.writer = False
        else:
            self.readers -= 1

    @property
    def holders(self) -> int:
        return self.readers + (1 if self.writer else 0)

    @property
    def idle(self) -> bool:
        return self.holders == 0 and self.waiting == 0


class RepositoryLockManager:
    """
    Readers-writer locks for repository operations, one per repository key.

    Waits are either bounded (timeout in seconds, 0 = try once) or unbounded
    (timeout=None). A repository's state is created on first use and dropped
    as soon as nobody holds or waits for it.
    """

    def __init__(self):
        self._states: dict[str, _RepositoryState] = {}

    def _discard_if_idle(self, repository_key: str, state: _RepositoryState) -> None:
        if state.idle and self._states.get(repository_key) is state:
            del self._states[repository_key]

    async def acquire(
        self,
        repository_key: str,
        lock_type: LockType,
        timeout: float | None = 0,
        reason: str = "",
    ) -> RepositoryLock | None:
        """
        Acquire a lock on a repository.

        Returns the held lock, or None if it could not be acquired in time.
        """
        state = self._states.get(repository_key)
        if state is None:
            state = self._states[repository_key] = _RepositoryState()
        # Registered before the first await so the state cannot be discarded under us
        state.waiting += 1
        try:
            async with state.condition:
                if not state.available(lock_type):
                    if timeout == 0:
                        return None
                    ready = state.condition.wait_for(lambda: state.available(lock_type))
                    try:
                        await asyncio.wait_for(ready, timeout)
                    except asyncio.TimeoutError:
                        logger.debug(f"Timed out waiting for {lock_type.value} lock ({reason})")
                        return None
                state.hold(lock_type)
                return RepositoryLock(repository_key, lock_type, reason)
        finally:
            state.waiting -= 1
            self._discard_if_idle(repository_key, state)

    async def release(self, lock: RepositoryLock) -> None:
        """Release a held lock and wake its waiters."""
        if lock.released:
            return
        state = self._states.get(lock.repository_key)
        if state is None:
            return
        async with state.condition:
            lock.released = True
            state.drop(lock.lock_type)
            state.condition.notify_all()
        self._discard_if_idle(lock.repository_key, state)

    def get_lock_count(self, repository_key: str) -> int:
        state = self._states.get(repository_key)
        return state.holders if state is not None else 0

    @asynccontextmanager
    async def lock(
        self,
        repository_key: str,
        lock_type: LockType,
        timeout: float | None = 0,
        reason: str = "",
    ):
        """
        Context manager for automatic lock acquire/release.

        Raises:
            LockTimeoutError: If lock cannot be acquired within timeout
        """
        lock = await self.acquire(repository_key, lock_type, timeout, reason)
        if lock is None:
            raise LockTimeoutError(
                f"Failed to acquire {lock_type.value} lock on {repository_key} "
                f"within {timeout}s"
            )

        try:
            yield lock
        finally:
            await self.release(lock)


# Global lock manager instance
repository_locks = RepositoryLockManager()
