"""
Progress store and streak state machine
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ...streak import effective_streak, mark_completed, next_streak, refresh_week
from ..database.database_manager import DatabaseManager
from ..database.models import Fetched, InsertOutcome, UserProgress

if TYPE_CHECKING:
    from ..profile.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class ProgressStore:
    """Reads and advances per-user progress"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        profile_store: "ProfileStore | None" = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self.profile_store = profile_store
        self._clock = clock

    def _default_progress(self, user_id: str | None) -> UserProgress:
        return UserProgress(
            user_id=user_id,
            weekly_progress=refresh_week(None, self._clock().date()),
        )

    async def initialize(self, user_id: str) -> InsertOutcome:
        """Create a zeroed record if the user has none"""
        return self.db_manager.progress_repo.create_progress(self._default_progress(user_id))

    async def get_progress(self, user_id: str | None) -> Fetched[UserProgress]:
        """
        Get progress with expired streaks already applied

        The stored streak is shown as 0 once the last lesson is older than
        yesterday. That correction is written back on a best-effort basis;
        the returned value does not depend on the write.
        """
        if user_id is None:
            return Fetched(self._default_progress(None))

        today = self._clock().date()
        repo = self.db_manager.progress_repo

        try:
            progress = repo.get_progress(user_id)
        except Exception as e:
            logger.error(f"Error loading progress for user {user_id}: {e}")
            return Fetched(self._default_progress(user_id), degraded=True, error=str(e))

        if progress is None:
            progress = self._default_progress(user_id)
            repo.create_progress(progress)
            return Fetched(progress)

        streak = effective_streak(progress.last_learning_date, progress.current_streak, today)
        if streak != progress.current_streak:
            logger.info(
                f"Streak for user {user_id} expired "
                f"(last lesson {progress.last_learning_date})"
            )
            if not repo.update_streak(user_id, streak):
                logger.warning(f"Could not persist expired streak for user {user_id}")
            progress.current_streak = streak

        progress.weekly_progress = refresh_week(progress.weekly_progress, today)
        return Fetched(progress)

    async def update_after_learning(
        self, user_id: str | None, repeated: bool = False
    ) -> UserProgress | None:
        """
        Advance progress after a completed lesson

        Args:
            user_id: Active user
            repeated: The lesson word was learned before; such a lesson only
                counts when no lesson was completed today

        Returns:
            Updated progress, or None if there is no user or the write failed
        """
        if user_id is None:
            logger.warning("Cannot update progress without an active user")
            return None

        today = self._clock().date()
        repo = self.db_manager.progress_repo

        try:
            progress = repo.get_progress(user_id) or self._default_progress(user_id)
        except Exception as e:
            logger.error(f"Error loading progress for user {user_id}: {e}")
            return None

        if repeated and progress.last_learning_date == today:
            logger.info(f"User {user_id} repeated a known word, today already counted")
            return progress

        updated = UserProgress(
            user_id=user_id,
            words_learned=progress.words_learned + 1,
            current_streak=next_streak(
                progress.last_learning_date,
                effective_streak(progress.last_learning_date, progress.current_streak, today),
                today,
            ),
            last_learning_date=today,
            weekly_progress=mark_completed(progress.weekly_progress, today),
        )

        if not repo.save_progress(updated):
            return None

        logger.info(
            f"User {user_id} progress: {updated.words_learned} words, "
            f"streak {updated.current_streak}"
        )

        if self.profile_store is not None:
            await self.profile_store.sync_with_progress(user_id, updated)

        return updated

    async def clear(self, user_id: str) -> bool:
        """Delete the progress record"""
        return self.db_manager.progress_repo.delete_progress(user_id)
