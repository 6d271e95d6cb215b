"""
Authentication service: input validation and user-facing error categories
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ...config import get_settings
from ...utils import is_valid_email
from ..session.session_coordinator import SessionCoordinator
from .identity import IdentityProvider, IdentityProviderError

logger = logging.getLogger(__name__)


class AuthErrorCategory(str, Enum):
    VALIDATION = "validation"
    INVALID_CREDENTIALS = "invalid_credentials"
    ALREADY_REGISTERED = "already_registered"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    EMAIL_NOT_FOUND = "email_not_found"
    UNKNOWN = "unknown"


ERROR_MESSAGES = {
    AuthErrorCategory.INVALID_CREDENTIALS: "Invalid email or password. Please try again.",
    AuthErrorCategory.ALREADY_REGISTERED: "An account with this email already exists. Please sign in instead.",
    AuthErrorCategory.RATE_LIMITED: "Too many attempts. Please wait a few minutes and try again.",
    AuthErrorCategory.NETWORK: "Network error. Please check your connection and try again.",
    AuthErrorCategory.EMAIL_NOT_FOUND: "No account found with this email address.",
    AuthErrorCategory.UNKNOWN: "Something went wrong. Please try again.",
}

# Checked in order, first match wins
_CATEGORY_PATTERNS = [
    (AuthErrorCategory.RATE_LIMITED, ("rate limit", "too many")),
    (AuthErrorCategory.ALREADY_REGISTERED, ("already registered", "already exists")),
    (AuthErrorCategory.INVALID_CREDENTIALS, ("invalid login", "invalid credentials", "wrong password")),
    (AuthErrorCategory.NETWORK, ("network", "timeout", "timed out", "connection")),
    (AuthErrorCategory.EMAIL_NOT_FOUND, ("not found", "invalid email")),
]


@dataclass
class AuthResult:
    success: bool
    user_id: str | None = None
    error: AuthErrorCategory | None = None
    message: str = ""


def categorize_error(error: Exception | str) -> AuthErrorCategory:
    """Map a provider error message to a user-facing category"""
    text = str(error).lower()
    for category, patterns in _CATEGORY_PATTERNS:
        if any(pattern in text for pattern in patterns):
            return category
    return AuthErrorCategory.UNKNOWN


def _failure(category: AuthErrorCategory, message: str | None = None) -> AuthResult:
    return AuthResult(success=False, error=category, message=message or ERROR_MESSAGES[category])


class AuthService:
    """Validates credentials and calls the identity provider"""

    def __init__(self, provider: IdentityProvider, coordinator: SessionCoordinator):
        self.provider = provider
        self.coordinator = coordinator
        self.min_password_length = get_settings().min_password_length
        coordinator.attach(provider)

    def validate_sign_up(
        self, name: str, email: str, password: str, confirm_password: str
    ) -> AuthResult | None:
        """Return a failed AuthResult for invalid input, None when input is fine"""
        if not (name or "").strip() or not email or not password:
            return _failure(AuthErrorCategory.VALIDATION, "Please fill in all fields")
        if not is_valid_email(email):
            return _failure(AuthErrorCategory.VALIDATION, "Please enter a valid email address")
        return self.validate_new_password(password, confirm_password)

    def validate_new_password(self, password: str, confirm_password: str) -> AuthResult | None:
        if len(password) < self.min_password_length:
            return _failure(
                AuthErrorCategory.VALIDATION,
                f"Password must be at least {self.min_password_length} characters",
            )
        if password != confirm_password:
            return _failure(AuthErrorCategory.VALIDATION, "Passwords do not match")
        return None

    async def sign_up(
        self, name: str, email: str, password: str, confirm_password: str
    ) -> AuthResult:
        invalid = self.validate_sign_up(name, email, password, confirm_password)
        if invalid:
            return invalid

        try:
            user = await self.provider.sign_up(name.strip(), email.strip(), password)
        except IdentityProviderError as e:
            logger.warning(f"Sign-up failed: {e}")
            return _failure(categorize_error(e))

        return AuthResult(success=True, user_id=user.user_id)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            return _failure(AuthErrorCategory.VALIDATION, "Please enter your email and password")
        if not is_valid_email(email):
            return _failure(AuthErrorCategory.VALIDATION, "Please enter a valid email address")

        try:
            user = await self.provider.sign_in(email.strip(), password)
        except IdentityProviderError as e:
            logger.warning(f"Sign-in failed: {e}")
            return _failure(categorize_error(e))

        return AuthResult(success=True, user_id=user.user_id)

    async def sign_out(self) -> AuthResult:
        try:
            await self.provider.sign_out()
        except IdentityProviderError as e:
            logger.error(f"Sign-out error: {e}")
            # Local state is cleared even when the provider call fails
            await self.coordinator.handle_sign_out()
            return _failure(categorize_error(e))
        return AuthResult(success=True)

    async def continue_as_guest(self) -> AuthResult:
        await self.coordinator.continue_as_guest()
        return AuthResult(success=True)

    async def restore_session(self) -> AuthResult:
        """Resume the identity stored by the last sign-in"""
        try:
            user = await self.provider.get_session()
        except IdentityProviderError as e:
            logger.error(f"Error getting session: {e}")
            await self.coordinator.continue_as_guest()
            return _failure(categorize_error(e))

        if user is None:
            await self.coordinator.continue_as_guest()
            return AuthResult(success=False, message="No saved session")

        await self.coordinator.handle_sign_in(user.user_id, user)
        return AuthResult(success=True, user_id=user.user_id)

    async def request_password_reset(self, email: str) -> tuple[AuthResult, str | None]:
        """Ask the provider for a reset token"""
        if not is_valid_email(email):
            return _failure(AuthErrorCategory.VALIDATION, "Please enter a valid email address"), None

        try:
            token = await self.provider.request_password_reset(email.strip())
        except IdentityProviderError as e:
            logger.warning(f"Password reset failed: {e}")
            return _failure(categorize_error(e)), None

        return AuthResult(success=True, message="Check your email for a reset link"), token

    async def reset_password(
        self, email: str, reset_token: str, password: str, confirm_password: str
    ) -> AuthResult:
        invalid = self.validate_new_password(password, confirm_password)
        if invalid:
            return invalid

        try:
            await self.provider.update_password(email.strip(), reset_token, password)
        except IdentityProviderError as e:
            logger.warning(f"Password update failed: {e}")
            return _failure(categorize_error(e), str(e) if "reset link" in str(e) else None)

        return AuthResult(success=True, message="Password updated")
