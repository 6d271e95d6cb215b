"""
Profile store for display name, level, goals and denormalized totals
"""

import logging
from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime
from typing import Any

from ...streak import effective_streak
from ...utils import email_local_part
from ..database.database_manager import DatabaseManager
from ..database.models import Fetched, InsertOutcome, Level, UserProfile, UserProgress

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"


def resolve_username(full_name: str | None, username: str | None, email: str | None) -> str:
    """Pick a display username: full name, username, email local part, 'User'"""
    return (
        (full_name or "").strip()
        or (username or "").strip()
        or email_local_part(email or "")
        or "User"
    )


class ProfileStore:
    """Reads and updates user profiles"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self._clock = clock

    async def get_profile(self, user_id: str | None) -> Fetched[UserProfile]:
        """Get the profile, a default one for guests or missing rows"""
        if user_id is None:
            return Fetched(UserProfile(user_id=None))

        try:
            profile = self.db_manager.profile_repo.get_profile(user_id)
        except Exception as e:
            logger.error(f"Error loading profile for user {user_id}: {e}")
            return Fetched(UserProfile(user_id=user_id), degraded=True, error=str(e))

        if profile is None:
            logger.info(f"No profile for user {user_id}, using defaults")
            return Fetched(UserProfile(user_id=user_id))
        return Fetched(profile)

    async def exists(self, user_id: str) -> bool:
        """Check whether a profile exists

        A failed read is reported as False so first-time setup gets attempted;
        setup is idempotent.
        """
        try:
            return self.db_manager.profile_repo.profile_exists(user_id)
        except Exception as e:
            logger.error(f"Error checking profile for user {user_id}: {e}")
            return False

    async def create_if_absent(
        self,
        user_id: str,
        full_name: str = "",
        email: str = "",
        username: str | None = None,
    ) -> InsertOutcome:
        """Create a default profile unless one exists"""
        profile = UserProfile(
            user_id=user_id,
            full_name=full_name or "",
            username=resolve_username(full_name, username, email),
            email=email or "",
            join_date=self._clock(),
        )
        return self.db_manager.profile_repo.create_profile(profile)

    async def update_level(self, user_id: str, level: Level | str) -> bool:
        """Set the learner level"""
        if isinstance(level, str):
            level = Level.parse(level)
        return self.db_manager.profile_repo.update_profile(user_id, level=level)

    async def update_learning_goals(self, user_id: str, goals: set[str] | list[str]) -> bool:
        """Replace the learning goals"""
        return self.db_manager.profile_repo.update_profile(user_id, learning_goals=set(goals))

    async def update_full_name(self, user_id: str, full_name: str) -> bool:
        """Change the full name and the username derived from it"""
        full_name = (full_name or "").strip()
        if not full_name:
            return False
        return self.db_manager.profile_repo.update_profile(
            user_id, full_name=full_name, username=full_name
        )

    async def sync_with_progress(self, user_id: str, progress: UserProgress) -> bool:
        """Mirror progress totals into the profile"""
        synced = self.db_manager.profile_repo.update_profile(
            user_id,
            total_words=progress.words_learned,
            current_streak=progress.current_streak,
            is_new_user=False,
        )
        if not synced:
            logger.warning(f"Profile sync skipped for user {user_id}")
        return synced

    async def get_user_stats(self, user_id: str | None) -> dict[str, Any]:
        """
        Summary used by the home screen

        Returns:
            Dict with total_words, streak, level, full_name, join_date,
            last_learning_date and the five most recent words
        """
        profile = (await self.get_profile(user_id)).value
        stats: dict[str, Any] = {
            "total_words": 0,
            "streak": 0,
            "level": profile.level.value,
            "full_name": profile.full_name,
            "display_name": profile.display_name,
            "join_date": profile.join_date,
            "last_learning_date": None,
            "recent_words": [],
        }
        if user_id is None:
            return stats

        try:
            progress = self.db_manager.progress_repo.get_progress(user_id)
            words = self.db_manager.word_repo.get_words_by_user(user_id)
        except Exception as e:
            logger.error(f"Error loading stats for user {user_id}: {e}")
            return stats

        if progress is not None:
            stats["total_words"] = progress.words_learned or len(words)
            stats["streak"] = effective_streak(
                progress.last_learning_date, progress.current_streak, self._clock().date()
            )
            stats["last_learning_date"] = progress.last_learning_date
        else:
            stats["total_words"] = len(words)

        stats["recent_words"] = words[:5]
        return stats

    async def export_user_data(self, user_id: str) -> dict[str, Any]:
        """
        Snapshot of everything stored for a user

        Read errors propagate; callers decide whether a partial export is
        acceptable.
        """
        profile = self.db_manager.profile_repo.get_profile(user_id)
        progress = self.db_manager.progress_repo.get_progress(user_id)
        words = self.db_manager.word_repo.get_words_by_user(user_id)

        return {
            "user_id": user_id,
            "timestamp": self._clock().isoformat(),
            "profile": self._profile_to_dict(profile) if profile else None,
            "progress": asdict(progress) if progress else None,
            "words": [asdict(word) for word in words],
            "metadata": {
                "version": EXPORT_FORMAT_VERSION,
                "total_words": len(words),
                "level": profile.level.value if profile else Level.BEGINNER.value,
                "join_date": profile.join_date if profile else None,
            },
        }

    async def clear(self, user_id: str) -> bool:
        """Delete the profile"""
        return self.db_manager.profile_repo.delete_profile(user_id)

    @staticmethod
    def _profile_to_dict(profile: UserProfile) -> dict[str, Any]:
        data = asdict(profile)
        data["level"] = profile.level.value
        data["learning_goals"] = sorted(profile.learning_goals)
        return data
