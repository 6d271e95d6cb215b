"""
Session coordinator binding the stores to the signed-in user

The active session is an immutable value replaced on every auth change. Stores
receive the user id from it explicitly, so a None id means guest mode.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...assessment import PENDING_ASSESSMENT_KEY, load_pending_assessment
from ...config import get_settings
from ...utils import retry_on_exception
from ..auth.identity import AuthEvent, AuthUser, IdentityProvider
from ..database.database_manager import DatabaseManager
from ..database.models import InsertOutcome
from ..database.repositories.cache_repository import user_cache_key
from ..profile.profile_store import ProfileStore
from ..progress.learned_words import LearnedWordsLedger
from ..progress.progress_store import ProgressStore

logger = logging.getLogger(__name__)

DELETION_BACKUP_PREFIX = "deletion_backup_"


@dataclass(frozen=True)
class UserSession:
    user_id: str | None = None
    email: str = ""
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


class DeletionStepError(Exception):
    """A deletion step reported failure without raising"""


@dataclass
class DeletionStepResult:
    name: str
    success: bool
    error: str | None = None


@dataclass
class DeletionReport:
    """Outcome of account deletion; completed is always True"""

    user_id: str | None
    steps: list[DeletionStepResult] = field(default_factory=list)
    backup_key: str | None = None
    completed: bool = True

    @property
    def failed_steps(self) -> list[str]:
        return [step.name for step in self.steps if not step.success]


class SessionCoordinator:
    """Tracks the active user and runs first-time setup and teardown"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        progress_store: ProgressStore,
        profile_store: ProfileStore,
        ledger: LearnedWordsLedger,
        provider: IdentityProvider | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self.progress_store = progress_store
        self.profile_store = profile_store
        self.ledger = ledger
        self.provider = provider
        self._clock = clock
        self._session = UserSession(started_at=clock())
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def session(self) -> UserSession:
        return self._session

    def attach(self, provider: IdentityProvider) -> None:
        """Follow the provider's sign-in and sign-out events"""
        if self._unsubscribe:
            self._unsubscribe()
        self.provider = provider
        self._unsubscribe = provider.on_auth_state_change(self._on_auth_event)

    async def _on_auth_event(self, event: AuthEvent, user: AuthUser | None) -> None:
        logger.debug(f"Auth event {event.value}")
        if event == AuthEvent.SIGNED_IN and user is not None:
            await self.handle_sign_in(user.user_id, user)
        elif event == AuthEvent.SIGNED_OUT:
            await self.handle_sign_out()

    async def handle_sign_in(
        self, user_id: str, user_info: AuthUser | dict[str, Any] | None = None
    ) -> UserSession:
        """
        Make user_id the active user and set up their records on first sign-in

        Args:
            user_id: Identity provider user ID
            user_info: AuthUser or mapping with full_name, email and username

        Returns:
            The new active session
        """
        if isinstance(user_info, AuthUser):
            info = {"full_name": user_info.full_name, "email": user_info.email}
        else:
            info = dict(user_info or {})

        self._session = UserSession(
            user_id=user_id, email=info.get("email") or "", started_at=self._clock()
        )
        logger.info(f"Active user set to {user_id}")

        if not await self.profile_store.exists(user_id):
            await self.initialize_user(
                user_id,
                full_name=info.get("full_name") or "",
                email=info.get("email") or "",
                username=info.get("username"),
            )

        await self.apply_pending_assessment(user_id)
        return self._session

    async def initialize_user(
        self,
        user_id: str,
        full_name: str = "",
        email: str = "",
        username: str | None = None,
    ) -> bool:
        """Create zeroed progress and a default profile; existing rows count as success"""
        progress_outcome = await self.progress_store.initialize(user_id)
        profile_outcome = await self.profile_store.create_if_absent(
            user_id, full_name=full_name, email=email, username=username
        )

        initialized = InsertOutcome.FAILED not in (progress_outcome, profile_outcome)
        if initialized:
            logger.info(
                f"Initialized user {user_id} "
                f"(progress {progress_outcome.value}, profile {profile_outcome.value})"
            )
        else:
            logger.error(f"Failed to initialize user {user_id}")
        return initialized

    async def apply_pending_assessment(self, user_id: str) -> bool:
        """Move an assessment taken before sign-in into the profile"""
        cache = self.db_manager.cache_repo
        result = load_pending_assessment(cache)
        if result is None:
            return False

        level_saved = await self.profile_store.update_level(user_id, result.level)
        goals_saved = await self.profile_store.update_learning_goals(user_id, result.learning_goals)
        cache.set(user_cache_key(user_id, "familiar_words"), result.familiar_words)

        if level_saved and goals_saved:
            cache.remove(PENDING_ASSESSMENT_KEY)
            logger.info(f"Applied pending assessment to user {user_id}: {result.level.value}")
            return True

        logger.warning(f"Pending assessment kept for user {user_id}, profile update failed")
        return False

    async def handle_sign_out(self) -> UserSession:
        """Switch to guest mode"""
        if not self._session.is_guest:
            logger.info(f"User {self._session.user_id} signed out")
        self._session = UserSession(started_at=self._clock())
        return self._session

    async def continue_as_guest(self) -> UserSession:
        return await self.handle_sign_out()

    async def delete_account(self) -> DeletionReport:
        """
        Remove all data of the active user

        Steps run in order and each is retried; a failing step is recorded and
        the pipeline moves on. The session always ends in guest mode.

        Returns:
            DeletionReport listing each step's outcome
        """
        user_id = self._session.user_id
        report = DeletionReport(user_id=user_id)
        settings = get_settings()

        async def backup() -> None:
            snapshot = await self.profile_store.export_user_data(user_id)
            key = f"{DELETION_BACKUP_PREFIX}{user_id}_{int(self._clock().timestamp())}"
            if not self.db_manager.cache_repo.set(key, snapshot):
                raise DeletionStepError("backup not stored")
            report.backup_key = key

        async def expect(result: Awaitable[bool], what: str) -> None:
            if not await result:
                raise DeletionStepError(f"{what} reported failure")

        async def clear_learned_words() -> None:
            await expect(self.ledger.clear(user_id), "clearing learned words")

        async def clear_progress() -> None:
            await expect(self.progress_store.clear(user_id), "clearing progress")

        async def clear_profile() -> None:
            await expect(self.profile_store.clear(user_id), "clearing profile")

        async def delete_remote_account() -> None:
            if self.provider is not None:
                await self.provider.delete_account(user_id)

        async def sign_out_remote() -> None:
            if self.provider is not None:
                await self.provider.sign_out()

        async def clear_cache() -> None:
            removed = self.db_manager.cache_repo.clear_prefix(f"user_{user_id}_")
            logger.debug(f"Removed {removed} cached keys for user {user_id}")

        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = []
        if user_id is not None:
            steps = [
                ("backup", backup),
                ("clear_learned_words", clear_learned_words),
                ("clear_progress", clear_progress),
                ("clear_profile", clear_profile),
                ("delete_remote_account", delete_remote_account),
                ("sign_out_remote", sign_out_remote),
                ("clear_cache", clear_cache),
            ]
        else:
            logger.warning("Account deletion requested in guest mode")

        for name, step in steps:
            retrying = retry_on_exception(
                max_retries=settings.deletion_step_retries + 1,
                delay=settings.deletion_retry_delay,
            )(step)
            try:
                await retrying()
                report.steps.append(DeletionStepResult(name, True))
            except Exception as e:
                logger.error(f"Deletion step {name} failed for user {user_id}: {e}")
                report.steps.append(DeletionStepResult(name, False, str(e)))

        self._session = UserSession(started_at=self._clock())
        report.steps.append(DeletionStepResult("reset_session", True))

        if report.failed_steps:
            logger.warning(f"Account deletion finished with failures: {report.failed_steps}")
        else:
            logger.info(f"Account {user_id} deleted")
        return report
