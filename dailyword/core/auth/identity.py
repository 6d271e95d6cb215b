"""Identity provider contract shared by the auth service and session coordinator"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    """Identity returned by a provider"""

    user_id: str
    email: str
    full_name: str = ""


class IdentityProviderError(Exception):
    """Raised by providers; the message is matched to pick a user-facing category"""


AuthStateCallback = Callable[[AuthEvent, AuthUser | None], Awaitable[None]]


class IdentityProvider(Protocol):
    async def sign_up(self, name: str, email: str, password: str) -> AuthUser: ...

    async def sign_in(self, email: str, password: str) -> AuthUser: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> AuthUser | None: ...

    async def request_password_reset(self, email: str) -> str: ...

    async def update_password(self, email: str, reset_token: str, new_password: str) -> None: ...

    async def delete_account(self, user_id: str) -> None: ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]: ...
