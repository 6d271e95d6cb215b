"""Daily gate deciding whether a user may start a lesson"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ...config import get_settings
from ...streak import countdown_to_midnight, next_midnight
from ..database.database_manager import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass
class GateStatus:
    """Outcome of a daily limit check"""

    can_learn: bool
    words_today: int
    daily_limit: int
    next_available: datetime
    degraded: bool = False

    def countdown(self, now: datetime | None = None) -> timedelta:
        """Time remaining until next_available"""
        remaining = self.next_available - (now or datetime.now())
        return max(remaining, timedelta(0))


class DailyGate:
    """Counts today's completed words against the daily limit"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        daily_limit: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self.daily_limit = daily_limit if daily_limit is not None else get_settings().daily_word_limit
        self._clock = clock

    async def can_learn_today(self, user_id: str | None) -> GateStatus:
        """
        Check whether the user may complete another lesson today

        Words count toward the local calendar day of their created_at, so a
        word at 23:59 and one at 00:01 fall on different days. A failed read
        lets the user through.

        Args:
            user_id: Active user, None for guest

        Returns:
            GateStatus with next_available set to the next local midnight
        """
        now = self._clock()
        next_available = next_midnight(now)

        if user_id is None:
            return GateStatus(True, 0, self.daily_limit, next_available)

        try:
            words = self.db_manager.word_repo.get_words_by_user(user_id)
        except Exception as e:
            logger.error(f"Daily limit check failed for user {user_id}, allowing lesson: {e}")
            return GateStatus(True, 0, self.daily_limit, next_available, degraded=True)

        today = now.date()
        words_today = sum(1 for word in words if word.created_at.date() == today)
        can_learn = words_today < self.daily_limit

        logger.debug(
            f"User {user_id} learned {words_today}/{self.daily_limit} words today"
        )
        return GateStatus(can_learn, words_today, self.daily_limit, next_available)

    def countdown(self) -> timedelta:
        """Time remaining until the gate reopens"""
        return countdown_to_midnight(self._clock())
