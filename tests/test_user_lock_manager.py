"""
Tests for UserLockManager
"""

import pytest

from dailyword.core.locks.user_lock_manager import UserLockedError, UserLockManager


@pytest.fixture
def lock_manager(clock):
    return UserLockManager(lock_timeout_minutes=1, clock=clock)


class TestUserLockManager:
    def test_acquire_and_release(self, lock_manager):
        assert lock_manager.acquire_lock("u1", "complete_lesson")
        assert lock_manager.is_locked("u1")
        assert lock_manager.get_lock_info("u1").operation == "complete_lesson"

        assert not lock_manager.acquire_lock("u1", "delete_account")
        assert lock_manager.acquire_lock("u2", "complete_lesson")
        assert lock_manager.get_active_locks_count() == 2

        assert lock_manager.release_lock("u1")
        assert not lock_manager.release_lock("u1")
        assert not lock_manager.is_locked("u1")

    def test_locked_context(self, lock_manager):
        with lock_manager.locked("u1", "complete_lesson") as info:
            assert info.operation == "complete_lesson"
            with pytest.raises(UserLockedError) as exc_info:
                with lock_manager.locked("u1", "delete_account"):
                    pass
            assert exc_info.value.operation == "complete_lesson"

        assert not lock_manager.is_locked("u1")

    def test_locked_releases_on_error(self, lock_manager):
        with pytest.raises(ValueError):
            with lock_manager.locked("u1", "complete_lesson"):
                raise ValueError("boom")

        assert not lock_manager.is_locked("u1")

    def test_abandoned_lock_is_dropped(self, lock_manager, clock):
        lock_manager.acquire_lock("u1", "complete_lesson")
        clock.advance(minutes=2)

        assert not lock_manager.is_locked("u1")
        assert lock_manager.acquire_lock("u1", "complete_lesson")

    def test_prune(self, lock_manager, clock):
        lock_manager.acquire_lock("u1", "complete_lesson")
        clock.advance(seconds=30)
        lock_manager.acquire_lock("u2", "complete_lesson")
        clock.advance(seconds=45)

        assert lock_manager.prune() == 1
        assert lock_manager.is_locked("u2")

    def test_expired_block_does_not_release_newer_lock(self, lock_manager, clock):
        with lock_manager.locked("u1", "complete_lesson"):
            clock.advance(minutes=2)
            assert lock_manager.acquire_lock("u1", "delete_account")

        assert lock_manager.get_lock_info("u1").operation == "delete_account"

    @pytest.mark.asyncio
    async def test_start_and_stop(self, lock_manager):
        await lock_manager.start()
        lock_manager.acquire_lock("u1", "complete_lesson")

        await lock_manager.stop()

        assert lock_manager.get_active_locks_count() == 0
