"""
Tests for authentication with the local identity provider
"""

import sqlite3
from unittest.mock import patch

import pytest

from dailyword.core.auth.auth_service import AuthErrorCategory, AuthService, categorize_error
from dailyword.core.auth.identity import AuthEvent
from dailyword.core.auth.local_provider import SESSION_CACHE_KEY, LocalIdentityProvider
from dailyword.core.profile.profile_store import ProfileStore
from dailyword.core.progress.daily_gate import DailyGate
from dailyword.core.progress.learned_words import LearnedWordsLedger
from dailyword.core.progress.progress_store import ProgressStore
from dailyword.core.session.session_coordinator import SessionCoordinator


@pytest.fixture
def provider(temp_db):
    return LocalIdentityProvider(temp_db, max_failed_attempts=3, lockout_minutes=15)


@pytest.fixture
def coordinator(temp_db, clock):
    profile_store = ProfileStore(temp_db, clock=clock)
    progress_store = ProgressStore(temp_db, profile_store=profile_store, clock=clock)
    ledger = LearnedWordsLedger(temp_db, DailyGate(temp_db, clock=clock), clock=clock)
    return SessionCoordinator(temp_db, progress_store, profile_store, ledger, clock=clock)


@pytest.fixture
def auth(provider, coordinator):
    return AuthService(provider, coordinator)


class TestCategorizeError:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Invalid login credentials", AuthErrorCategory.INVALID_CREDENTIALS),
            ("User already registered", AuthErrorCategory.ALREADY_REGISTERED),
            ("Too many requests, rate limit exceeded", AuthErrorCategory.RATE_LIMITED),
            ("Network request failed: timeout", AuthErrorCategory.NETWORK),
            ("Email not found", AuthErrorCategory.EMAIL_NOT_FOUND),
            ("Something odd", AuthErrorCategory.UNKNOWN),
        ],
    )
    def test_categorize_error(self, message, expected):
        assert categorize_error(message) == expected


class TestValidation:
    """Input checks run before the provider is called"""

    @pytest.mark.asyncio
    async def test_sign_up_validation(self, auth):
        missing = await auth.sign_up("", "ana@example.com", "secret1", "secret1")
        bad_email = await auth.sign_up("Ana", "ana.example.com", "secret1", "secret1")
        short = await auth.sign_up("Ana", "ana@example.com", "abc", "abc")
        mismatch = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret2")

        for result in (missing, bad_email, short, mismatch):
            assert not result.success
            assert result.error == AuthErrorCategory.VALIDATION

        assert short.message == "Password must be at least 6 characters"
        assert mismatch.message == "Passwords do not match"

    @pytest.mark.asyncio
    async def test_sign_in_validation(self, auth):
        result = await auth.sign_in("", "")
        assert result.error == AuthErrorCategory.VALIDATION


class TestAuthFlow:
    """Sign-up, sign-in and sign-out drive the active session"""

    @pytest.mark.asyncio
    async def test_sign_up_signs_in_and_initializes(self, auth, coordinator, temp_db):
        result = await auth.sign_up("Ana Diaz", "Ana@Example.com", "secret1", "secret1")

        assert result.success
        assert coordinator.session.user_id == result.user_id
        assert coordinator.session.email == "ana@example.com"
        assert temp_db.profile_repo.get_profile(result.user_id).full_name == "Ana Diaz"
        assert temp_db.progress_repo.get_progress(result.user_id) is not None

    @pytest.mark.asyncio
    async def test_duplicate_sign_up(self, auth):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        result = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")

        assert not result.success
        assert result.error == AuthErrorCategory.ALREADY_REGISTERED

    @pytest.mark.asyncio
    async def test_sign_out_and_back_in(self, auth, coordinator):
        signed_up = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")

        assert (await auth.sign_out()).success
        assert coordinator.session.is_guest

        signed_in = await auth.sign_in("ana@example.com", "secret1")
        assert signed_in.success
        assert signed_in.user_id == signed_up.user_id
        assert coordinator.session.user_id == signed_up.user_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth, coordinator):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        await auth.sign_out()

        result = await auth.sign_in("ana@example.com", "wrong-password")

        assert not result.success
        assert result.error == AuthErrorCategory.INVALID_CREDENTIALS
        assert result.message == "Invalid email or password. Please try again."
        assert coordinator.session.is_guest

    @pytest.mark.asyncio
    async def test_rate_limit_after_repeated_failures(self, auth):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        await auth.sign_out()

        for _ in range(3):
            await auth.sign_in("ana@example.com", "nope-nope")
        result = await auth.sign_in("ana@example.com", "secret1")

        assert not result.success
        assert result.error == AuthErrorCategory.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_continue_as_guest(self, auth, coordinator):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        assert (await auth.continue_as_guest()).success
        assert coordinator.session.is_guest

    @pytest.mark.asyncio
    async def test_restore_session(self, auth, temp_db, clock):
        signed_up = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")

        # a fresh start with the same database
        fresh_coordinator = SessionCoordinator(
            temp_db,
            ProgressStore(temp_db, clock=clock),
            ProfileStore(temp_db, clock=clock),
            LearnedWordsLedger(temp_db, DailyGate(temp_db, clock=clock), clock=clock),
            clock=clock,
        )
        fresh_auth = AuthService(LocalIdentityProvider(temp_db), fresh_coordinator)

        result = await fresh_auth.restore_session()

        assert result.success
        assert fresh_coordinator.session.user_id == signed_up.user_id

    @pytest.mark.asyncio
    async def test_restore_without_session(self, auth, coordinator, temp_db):
        result = await auth.restore_session()

        assert not result.success
        assert coordinator.session.is_guest
        assert temp_db.cache_repo.get(SESSION_CACHE_KEY) is None


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_reset_flow(self, auth):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        await auth.sign_out()

        requested, token = await auth.request_password_reset("ana@example.com")
        assert requested.success
        assert token

        reset = await auth.reset_password("ana@example.com", token, "newsecret", "newsecret")
        assert reset.success

        assert not (await auth.sign_in("ana@example.com", "secret1")).success
        assert (await auth.sign_in("ana@example.com", "newsecret")).success

    @pytest.mark.asyncio
    async def test_reset_token_is_single_use(self, auth):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        _, token = await auth.request_password_reset("ana@example.com")
        await auth.reset_password("ana@example.com", token, "newsecret", "newsecret")

        again = await auth.reset_password("ana@example.com", token, "another1", "another1")

        assert not again.success
        assert again.message == "Invalid or expired reset link"

    @pytest.mark.asyncio
    async def test_reset_unknown_email(self, auth):
        result, token = await auth.request_password_reset("ghost@example.com")

        assert not result.success
        assert result.error == AuthErrorCategory.EMAIL_NOT_FOUND
        assert token is None

    @pytest.mark.asyncio
    async def test_reset_token_expires(self, temp_db, coordinator, clock):
        auth = AuthService(
            LocalIdentityProvider(temp_db, reset_token_ttl_minutes=60, clock=clock), coordinator
        )
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        _, token = await auth.request_password_reset("ana@example.com")

        clock.advance(minutes=61)
        result = await auth.reset_password("ana@example.com", token, "newsecret", "newsecret")

        assert not result.success
        assert result.message == "Invalid or expired reset link"
        assert (await auth.sign_in("ana@example.com", "secret1")).success

    @pytest.mark.asyncio
    async def test_reset_database_error_is_reported(self, auth, temp_db):
        await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        _, issued = await auth.request_password_reset("ana@example.com")
        error = sqlite3.OperationalError("database is locked")

        with patch.object(temp_db.account_repo, "get_account_by_email", side_effect=error):
            requested, token = await auth.request_password_reset("ana@example.com")
            reset = await auth.reset_password("ana@example.com", issued, "newsecret", "newsecret")

        assert not requested.success
        assert requested.error == AuthErrorCategory.NETWORK
        assert token is None
        assert not reset.success
        assert reset.error == AuthErrorCategory.NETWORK


class TestAccountDeletion:
    @pytest.mark.asyncio
    async def test_credentials_stop_working_after_deletion(self, auth, coordinator, temp_db):
        signed_up = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")

        report = await coordinator.delete_account()
        result = await auth.sign_in("ana@example.com", "secret1")

        assert "delete_remote_account" not in report.failed_steps
        assert temp_db.account_repo.get_account(signed_up.user_id) is None
        assert not result.success
        assert result.error == AuthErrorCategory.INVALID_CREDENTIALS
        assert coordinator.session.is_guest

    @pytest.mark.asyncio
    async def test_sign_up_again_after_deletion(self, auth, coordinator):
        first = await auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        await coordinator.delete_account()

        second = await auth.sign_up("Ana", "ana@example.com", "secret2", "secret2")

        assert second.success
        assert second.user_id != first.user_id


class TestProviderEvents:
    @pytest.mark.asyncio
    async def test_listeners_and_unsubscribe(self, provider):
        events = []

        async def listener(event, user):
            events.append((event, user.email if user else None))

        unsubscribe = provider.on_auth_state_change(listener)
        await provider.sign_up("Ana", "ana@example.com", "secret1")
        await provider.sign_out()
        unsubscribe()
        await provider.sign_in("ana@example.com", "secret1")

        assert events == [
            (AuthEvent.SIGNED_IN, "ana@example.com"),
            (AuthEvent.SIGNED_OUT, None),
        ]
