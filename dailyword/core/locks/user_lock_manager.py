"""
Per-user operation locks

A user holds at most one lock at a time. Locks older than the timeout are
treated as abandoned and dropped the next time anyone looks at them.
"""

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60


class UserLockedError(Exception):
    """Raised when an operation is attempted while the user is locked"""

    def __init__(self, user_id: str, operation: str):
        super().__init__(f"User {user_id} is busy with {operation}")
        self.user_id = user_id
        self.operation = operation


@dataclass
class LockInfo:
    operation: str
    locked_at: datetime
    token: str

    def held_for(self, now: datetime) -> timedelta:
        return now - self.locked_at


class UserLockManager:
    """Rejects a second operation for a user while the first one runs"""

    def __init__(
        self,
        lock_timeout_minutes: int = 5,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            lock_timeout_minutes: Age after which a lock counts as abandoned
            clock: Source of the current time
        """
        self._locks: dict[str, LockInfo] = {}
        self._timeout = timedelta(minutes=lock_timeout_minutes)
        self._clock = clock
        self._cleanup_task: asyncio.Task | None = None

    async def start(self):
        """Start pruning abandoned locks in the background"""
        logger.info("Starting UserLockManager")
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self):
        """Stop the background task and forget every lock"""
        logger.info("Stopping UserLockManager")
        if self._cleanup_task:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
        self._locks.clear()

    def is_locked(self, user_id: str) -> bool:
        return self.get_lock_info(user_id) is not None

    def get_lock_info(self, user_id: str) -> LockInfo | None:
        self.prune()
        return self._locks.get(user_id)

    def acquire_lock(self, user_id: str, operation: str) -> bool:
        """
        Try to take the user's lock

        Returns:
            True if taken, False if another operation holds it
        """
        holder = self.get_lock_info(user_id)
        if holder is not None:
            logger.warning(f"User {user_id} busy with {holder.operation}, refusing {operation}")
            return False

        self._locks[user_id] = LockInfo(
            operation=operation, locked_at=self._clock(), token=uuid.uuid4().hex
        )
        logger.debug(f"Locked user {user_id} for {operation}")
        return True

    def release_lock(self, user_id: str) -> bool:
        """Release the user's lock, False if none was held"""
        info = self._locks.pop(user_id, None)
        if info is None:
            logger.warning(f"No lock to release for user {user_id}")
            return False
        logger.debug(f"Unlocked user {user_id} after {info.operation}")
        return True

    @contextlib.contextmanager
    def locked(self, user_id: str, operation: str) -> Iterator[LockInfo]:
        """
        Hold the user's lock for the duration of a block

        Raises:
            UserLockedError: if another operation holds the lock
        """
        if not self.acquire_lock(user_id, operation):
            holder = self._locks.get(user_id)
            raise UserLockedError(user_id, holder.operation if holder else operation)

        info = self._locks[user_id]
        try:
            yield info
        finally:
            # an expired lock may already belong to a newer operation
            current = self._locks.get(user_id)
            if current is not None and current.token == info.token:
                self.release_lock(user_id)

    def get_active_locks_count(self) -> int:
        self.prune()
        return len(self._locks)

    def prune(self) -> int:
        """Drop abandoned locks, returning how many were removed"""
        now = self._clock()
        expired = [
            user_id for user_id, info in self._locks.items() if info.held_for(now) > self._timeout
        ]
        for user_id in expired:
            info = self._locks.pop(user_id)
            logger.warning(f"Dropped abandoned lock of user {user_id} ({info.operation})")
        return len(expired)

    async def _cleanup_loop(self):
        while True:
            try:
                await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
                self.prune()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error pruning locks: {e}")
