"""
Ledger of learned words

Each (user, word) pair is recorded at most once. Writes are refused while the
daily gate is closed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ...utils import normalize_word
from ..database.database_manager import DatabaseManager
from ..database.models import Fetched, InsertOutcome, LearnedWord
from .daily_gate import DailyGate

logger = logging.getLogger(__name__)

DEFAULT_EMOJI = "📖"


class LedgerError(str, Enum):
    DAILY_LIMIT_REACHED = "daily_limit_reached"
    NO_ACTIVE_USER = "no_active_user"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass
class AddWordResult:
    """Outcome of add_word"""

    success: bool
    already_learned: bool = False
    error: LedgerError | None = None
    next_available: datetime | None = None
    countdown: timedelta | None = None

    @property
    def created(self) -> bool:
        return self.success and not self.already_learned


class LearnedWordsLedger:
    """Append-only store of completed words"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        gate: DailyGate,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self.gate = gate
        self._clock = clock

    async def add_word(
        self,
        user_id: str | None,
        word: str,
        meaning: str,
        emoji: str = DEFAULT_EMOJI,
    ) -> AddWordResult:
        """
        Record a completed word

        Args:
            user_id: Active user, None for guest
            word: Word as displayed, stored lowercase
            meaning: Definition
            emoji: Display emoji

        Returns:
            AddWordResult; already_learned is True when the word was recorded
            earlier, which counts as success
        """
        if user_id is None:
            logger.warning("Refusing to record a word without an active user")
            return AddWordResult(success=False, error=LedgerError.NO_ACTIVE_USER)

        status = await self.gate.can_learn_today(user_id)
        if not status.can_learn:
            logger.info(
                f"Daily limit reached for user {user_id} "
                f"({status.words_today}/{status.daily_limit})"
            )
            return AddWordResult(
                success=False,
                error=LedgerError.DAILY_LIMIT_REACHED,
                next_available=status.next_available,
                countdown=status.countdown(self._clock()),
            )

        outcome = self.db_manager.word_repo.insert_word(
            user_id,
            normalize_word(word),
            meaning,
            emoji or DEFAULT_EMOJI,
            self._clock(),
        )

        if outcome == InsertOutcome.FAILED:
            return AddWordResult(success=False, error=LedgerError.PERSISTENCE_FAILED)
        if outcome == InsertOutcome.ALREADY_EXISTED:
            return AddWordResult(success=True, already_learned=True)

        logger.info(f"User {user_id} learned '{normalize_word(word)}'")
        return AddWordResult(success=True)

    async def get_all(self, user_id: str | None) -> Fetched[list[LearnedWord]]:
        """Get every learned word, newest first"""
        if user_id is None:
            return Fetched([])

        try:
            return Fetched(self.db_manager.word_repo.get_words_by_user(user_id))
        except Exception as e:
            logger.error(f"Error loading learned words for user {user_id}: {e}")
            return Fetched([], degraded=True, error=str(e))

    async def recent_words(self, user_id: str | None, limit: int = 10) -> list[str]:
        """Words of the most recent entries, used to avoid repeats"""
        fetched = await self.get_all(user_id)
        return [entry.word for entry in fetched.value[:limit]]

    async def clear(self, user_id: str) -> bool:
        """Delete every learned word of a user"""
        return self.db_manager.word_repo.delete_words_by_user(user_id)
