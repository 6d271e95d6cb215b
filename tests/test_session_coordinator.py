"""
Tests for session handling, first-time setup and account deletion
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dailyword.assessment import PENDING_ASSESSMENT_KEY, assess, save_pending_assessment
from dailyword.core.auth.identity import AuthUser
from dailyword.core.database.models import InsertOutcome, Level
from dailyword.core.profile.profile_store import ProfileStore
from dailyword.core.progress.daily_gate import DailyGate
from dailyword.core.progress.learned_words import LearnedWordsLedger
from dailyword.core.progress.progress_store import ProgressStore
from dailyword.core.session.session_coordinator import SessionCoordinator


@pytest.fixture
def coordinator(temp_db, clock):
    profile_store = ProfileStore(temp_db, clock=clock)
    progress_store = ProgressStore(temp_db, profile_store=profile_store, clock=clock)
    ledger = LearnedWordsLedger(temp_db, DailyGate(temp_db, clock=clock), clock=clock)
    return SessionCoordinator(temp_db, progress_store, profile_store, ledger, clock=clock)


@pytest.fixture
def fast_retries():
    settings = MagicMock(deletion_step_retries=1, deletion_retry_delay=0)
    with patch("dailyword.core.session.session_coordinator.get_settings", return_value=settings):
        yield settings


class TestSignIn:
    """Test switching users and first-time setup"""

    @pytest.mark.asyncio
    async def test_starts_as_guest(self, coordinator):
        assert coordinator.session.is_guest

    @pytest.mark.asyncio
    async def test_first_sign_in_initializes_user(self, coordinator, temp_db):
        user = AuthUser(user_id="u1", email="ana@example.com", full_name="Ana Diaz")

        session = await coordinator.handle_sign_in("u1", user)

        assert session.user_id == "u1"
        assert session.email == "ana@example.com"
        profile = temp_db.profile_repo.get_profile("u1")
        assert profile.full_name == "Ana Diaz"
        assert profile.username == "Ana Diaz"
        assert temp_db.progress_repo.get_progress("u1").words_learned == 0

    @pytest.mark.asyncio
    async def test_username_falls_back_to_email(self, coordinator, temp_db):
        await coordinator.handle_sign_in("u1", {"email": "bo@example.com"})
        assert temp_db.profile_repo.get_profile("u1").username == "bo"

    @pytest.mark.asyncio
    async def test_returning_user_keeps_records(self, coordinator, temp_db):
        await coordinator.handle_sign_in("u1", {"full_name": "Ana"})
        temp_db.profile_repo.update_profile("u1", level=Level.ADVANCED)
        await coordinator.handle_sign_out()

        await coordinator.handle_sign_in("u1", {"full_name": "Someone Else"})

        profile = temp_db.profile_repo.get_profile("u1")
        assert profile.full_name == "Ana"
        assert profile.level == Level.ADVANCED

    @pytest.mark.asyncio
    async def test_initialize_user_is_idempotent(self, coordinator):
        assert await coordinator.initialize_user("u1", full_name="Ana")
        assert await coordinator.initialize_user("u1", full_name="Ana")

    @pytest.mark.asyncio
    async def test_initialize_user_reports_failure(self, coordinator, temp_db):
        with patch.object(temp_db.profile_repo, "create_profile", return_value=InsertOutcome.FAILED):
            assert not await coordinator.initialize_user("u1")

    @pytest.mark.asyncio
    async def test_pending_assessment_is_applied(self, coordinator, temp_db):
        result = assess(["curious", "generous", "reluctant"], ["emotions"])
        save_pending_assessment(temp_db.cache_repo, result)

        await coordinator.handle_sign_in("u1", {"full_name": "Ana"})

        profile = temp_db.profile_repo.get_profile("u1")
        assert profile.level == Level.INTERMEDIATE
        assert profile.learning_goals == {"emotions"}
        assert temp_db.cache_repo.get("user_u1_familiar_words") == ["curious", "generous", "reluctant"]
        assert temp_db.cache_repo.get(PENDING_ASSESSMENT_KEY) is None

    @pytest.mark.asyncio
    async def test_pending_assessment_kept_when_update_fails(self, coordinator, temp_db):
        save_pending_assessment(temp_db.cache_repo, assess(["ephemeral"]))
        await coordinator.initialize_user("u1")

        with patch.object(temp_db.profile_repo, "update_profile", return_value=False):
            assert not await coordinator.apply_pending_assessment("u1")

        assert temp_db.cache_repo.get(PENDING_ASSESSMENT_KEY) is not None

    @pytest.mark.asyncio
    async def test_sign_out_returns_to_guest(self, coordinator):
        await coordinator.handle_sign_in("u1", {})
        session = await coordinator.handle_sign_out()

        assert session.is_guest
        assert coordinator.session.is_guest


class TestDeleteAccount:
    """Test the deletion pipeline"""

    async def _seed(self, coordinator, temp_db, clock):
        await coordinator.handle_sign_in("u1", {"full_name": "Ana"})
        temp_db.word_repo.insert_word("u1", "mercy", "m", "🙏", clock())
        await coordinator.progress_store.update_after_learning("u1")
        temp_db.cache_repo.set("user_u1_level", "Beginner")
        temp_db.cache_repo.set("user_u2_level", "Advanced")

    @pytest.mark.asyncio
    async def test_delete_account(self, coordinator, temp_db, clock, fast_retries):
        provider = MagicMock()
        provider.sign_out = AsyncMock()
        provider.delete_account = AsyncMock()
        coordinator.provider = provider
        await self._seed(coordinator, temp_db, clock)

        report = await coordinator.delete_account()

        assert report.completed
        assert report.failed_steps == []
        assert [step.name for step in report.steps] == [
            "backup",
            "clear_learned_words",
            "clear_progress",
            "clear_profile",
            "delete_remote_account",
            "sign_out_remote",
            "clear_cache",
            "reset_session",
        ]
        assert temp_db.word_repo.get_words_by_user("u1") == []
        assert temp_db.progress_repo.get_progress("u1") is None
        assert temp_db.profile_repo.get_profile("u1") is None
        assert temp_db.cache_repo.get("user_u1_level") is None
        assert temp_db.cache_repo.get("user_u2_level") == "Advanced"
        provider.delete_account.assert_awaited_once_with("u1")
        provider.sign_out.assert_awaited_once()
        assert coordinator.session.is_guest

        backup = temp_db.cache_repo.get(report.backup_key)
        assert backup["user_id"] == "u1"
        assert backup["words"][0]["word"] == "mercy"

    @pytest.mark.asyncio
    async def test_failing_step_does_not_stop_pipeline(self, coordinator, temp_db, clock, fast_retries):
        await self._seed(coordinator, temp_db, clock)

        with patch.object(temp_db.progress_repo, "delete_progress", return_value=False) as delete:
            report = await coordinator.delete_account()

        assert report.completed
        assert report.failed_steps == ["clear_progress"]
        # one attempt plus one retry
        assert delete.call_count == 2
        assert temp_db.profile_repo.get_profile("u1") is None
        assert coordinator.session.is_guest

    @pytest.mark.asyncio
    async def test_raising_step_is_recorded(self, coordinator, temp_db, clock, fast_retries):
        await self._seed(coordinator, temp_db, clock)
        provider = MagicMock()
        provider.sign_out = AsyncMock(side_effect=ConnectionError("offline"))
        provider.delete_account = AsyncMock()
        coordinator.provider = provider

        report = await coordinator.delete_account()

        failed = [step for step in report.steps if not step.success]
        assert [step.name for step in failed] == ["sign_out_remote"]
        assert failed[0].error == "offline"
        assert temp_db.cache_repo.get("user_u1_level") is None

    @pytest.mark.asyncio
    async def test_guest_deletion_only_resets_session(self, coordinator, fast_retries):
        report = await coordinator.delete_account()

        assert report.user_id is None
        assert [step.name for step in report.steps] == ["reset_session"]
        assert report.backup_key is None
