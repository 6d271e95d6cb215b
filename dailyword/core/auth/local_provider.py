"""
Local identity provider backed by the accounts table

Passwords are stored as werkzeug password hashes. The signed-in identity
is kept in the cache so a restart can restore it.
"""

import hmac
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from ..database.database_manager import DatabaseManager
from .identity import AuthEvent, AuthStateCallback, AuthUser, IdentityProviderError

logger = logging.getLogger(__name__)

SESSION_CACHE_KEY = "auth_session"
RESET_CACHE_PREFIX = "password_reset_"


class LocalIdentityProvider:
    """Identity provider that keeps accounts in the local database"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        max_failed_attempts: int = 5,
        lockout_minutes: int = 15,
        reset_token_ttl_minutes: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_manager = db_manager
        self.max_failed_attempts = max_failed_attempts
        self.lockout = timedelta(minutes=lockout_minutes)
        self.reset_token_ttl = timedelta(minutes=reset_token_ttl_minutes)
        self._clock = clock
        self._failed_attempts: dict[str, list[datetime]] = {}
        self._listeners: list[AuthStateCallback] = []

    def on_auth_state_change(self, callback: AuthStateCallback):
        """Register a listener, returning a function that removes it"""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _emit(self, event: AuthEvent, user: AuthUser | None) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, user)
            except Exception as e:
                logger.error(f"Auth listener failed on {event.value}: {e}")

    async def sign_up(self, name: str, email: str, password: str) -> AuthUser:
        email = email.strip().lower()
        user_id = str(uuid.uuid4())

        try:
            created = self.db_manager.account_repo.create_account(
                user_id, email, name.strip(), generate_password_hash(password)
            )
        except Exception as e:
            raise IdentityProviderError(f"Network request failed: {e}") from e

        if not created:
            raise IdentityProviderError("User already registered")

        user = AuthUser(user_id=user_id, email=email, full_name=name.strip())
        logger.info(f"Registered account {user_id}")
        await self._start_session(user)
        return user

    async def sign_in(self, email: str, password: str) -> AuthUser:
        email = email.strip().lower()
        self._check_rate_limit(email)

        account = self._find_account(email)

        if account is None or not check_password_hash(account["password_hash"], password):
            self._record_failure(email)
            raise IdentityProviderError("Invalid login credentials")

        self._failed_attempts.pop(email, None)
        user = AuthUser(
            user_id=account["user_id"], email=account["email"], full_name=account["full_name"] or ""
        )
        await self._start_session(user)
        return user

    async def sign_out(self) -> None:
        self.db_manager.cache_repo.remove(SESSION_CACHE_KEY)
        await self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self) -> AuthUser | None:
        """Identity stored by the last sign-in, if its account still exists"""
        cached = self.db_manager.cache_repo.get(SESSION_CACHE_KEY)
        if not isinstance(cached, dict) or "user_id" not in cached:
            return None

        try:
            account = self.db_manager.account_repo.get_account(cached["user_id"])
        except Exception as e:
            raise IdentityProviderError(f"Network request failed: {e}") from e

        if account is None:
            self.db_manager.cache_repo.remove(SESSION_CACHE_KEY)
            return None
        return AuthUser(
            user_id=account["user_id"], email=account["email"], full_name=account["full_name"] or ""
        )

    async def request_password_reset(self, email: str) -> str:
        """Issue a one-time reset token for an existing account"""
        email = email.strip().lower()
        self._check_rate_limit(email)

        account = self._find_account(email)
        if account is None:
            raise IdentityProviderError("Email not found")

        token = secrets.token_urlsafe(24)
        stored = self._guarded(
            self.db_manager.cache_repo.set,
            f"{RESET_CACHE_PREFIX}{email}",
            {"token": token, "issued_at": self._clock().isoformat()},
        )
        if not stored:
            raise IdentityProviderError("Network request failed: reset link not saved")
        return token

    async def update_password(self, email: str, reset_token: str, new_password: str) -> None:
        email = email.strip().lower()
        key = f"{RESET_CACHE_PREFIX}{email}"
        issued = self._guarded(self.db_manager.cache_repo.get, key)
        if not self._is_valid_reset(issued, reset_token):
            raise IdentityProviderError("Invalid or expired reset link")

        account = self._find_account(email)
        if account is None:
            raise IdentityProviderError("Email not found")

        if not self.db_manager.account_repo.update_password(
            account["user_id"], generate_password_hash(new_password)
        ):
            raise IdentityProviderError("Network request failed: password not saved")
        self._guarded(self.db_manager.cache_repo.remove, key)
        logger.info(f"Password updated for account {account['user_id']}")

    async def delete_account(self, user_id: str) -> None:
        """Remove the account so its credentials stop working"""
        if not self.db_manager.account_repo.delete_account(user_id):
            raise IdentityProviderError("Network request failed: account not deleted")
        logger.info(f"Deleted account {user_id}")

    def _is_valid_reset(self, issued: Any, reset_token: str) -> bool:
        if not isinstance(issued, dict) or not issued.get("token"):
            return False
        if not hmac.compare_digest(str(issued["token"]), reset_token):
            return False

        try:
            issued_at = datetime.fromisoformat(issued["issued_at"])
        except (KeyError, TypeError, ValueError):
            return False
        if self._clock() - issued_at > self.reset_token_ttl:
            logger.info("Rejected an expired reset token")
            return False
        return True

    def _find_account(self, email: str) -> dict | None:
        return self._guarded(self.db_manager.account_repo.get_account_by_email, email)

    @staticmethod
    def _guarded(func, *args):
        """Call a storage function, reporting its errors as provider errors"""
        try:
            return func(*args)
        except Exception as e:
            raise IdentityProviderError(f"Network request failed: {e}") from e

    async def _start_session(self, user: AuthUser) -> None:
        self.db_manager.cache_repo.set(
            SESSION_CACHE_KEY, {"user_id": user.user_id, "email": user.email}
        )
        await self._emit(AuthEvent.SIGNED_IN, user)

    def _check_rate_limit(self, email: str) -> None:
        cutoff = self._clock() - self.lockout
        recent = [ts for ts in self._failed_attempts.get(email, []) if ts > cutoff]
        self._failed_attempts[email] = recent
        if len(recent) >= self.max_failed_attempts:
            logger.warning(f"Too many failed attempts for {email}")
            raise IdentityProviderError("Too many requests, rate limit exceeded")

    def _record_failure(self, email: str) -> None:
        self._failed_attempts.setdefault(email, []).append(self._clock())
