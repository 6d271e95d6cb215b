"""
Application wiring for the daily vocabulary core
"""

import logging
from collections.abc import Callable
from datetime import datetime

from .config import Settings, get_settings
from .core.auth.auth_service import AuthService
from .core.auth.local_provider import LocalIdentityProvider
from .core.database.database_manager import DatabaseManager, get_db_manager
from .core.learning.lesson_service import LessonService
from .core.locks.user_lock_manager import UserLockManager
from .core.profile.profile_store import ProfileStore
from .core.progress.daily_gate import DailyGate
from .core.progress.learned_words import LearnedWordsLedger
from .core.progress.progress_store import ProgressStore
from .core.session.session_coordinator import SessionCoordinator
from .lesson_generator import LessonGenerator, get_lesson_generator
from .lesson_transformer import LessonTransformer

logger = logging.getLogger(__name__)


class DailyWordApp:
    """Builds and holds every component around one database"""

    def __init__(
        self,
        settings: Settings | None = None,
        db_manager: DatabaseManager | None = None,
        generator: LessonGenerator | None = None,
        transformer: LessonTransformer | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or get_settings()
        self.db_manager = db_manager or get_db_manager()
        self.generator = generator or get_lesson_generator(
            use_mock=not self.settings.openai_api_key
        )
        self.lock_manager = UserLockManager(
            lock_timeout_minutes=self.settings.lock_timeout_minutes, clock=clock
        )

        self.profile_store = ProfileStore(self.db_manager, clock=clock)
        self.progress_store = ProgressStore(self.db_manager, self.profile_store, clock=clock)
        self.gate = DailyGate(self.db_manager, self.settings.daily_word_limit, clock=clock)
        self.ledger = LearnedWordsLedger(self.db_manager, self.gate, clock=clock)

        self.provider = LocalIdentityProvider(
            self.db_manager,
            reset_token_ttl_minutes=self.settings.reset_token_ttl_minutes,
            clock=clock,
        )
        self.coordinator = SessionCoordinator(
            db_manager=self.db_manager,
            progress_store=self.progress_store,
            profile_store=self.profile_store,
            ledger=self.ledger,
            clock=clock,
        )
        self.auth = AuthService(self.provider, self.coordinator)

        self.lessons = LessonService(
            gate=self.gate,
            ledger=self.ledger,
            progress_store=self.progress_store,
            profile_store=self.profile_store,
            generator=self.generator,
            transformer=transformer,
            lock_manager=self.lock_manager,
            lesson_timeout=self.settings.lesson_timeout,
        )

    @property
    def session(self):
        return self.coordinator.session

    async def start(self) -> None:
        """Start background tasks and restore the last session"""
        await self.lock_manager.start()
        result = await self.auth.restore_session()
        if result.success:
            logger.info(f"Restored session for user {result.user_id}")
        else:
            logger.info("Starting in guest mode")

    async def stop(self) -> None:
        await self.lock_manager.stop()
