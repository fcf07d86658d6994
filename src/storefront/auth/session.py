"""
Authentication session flows.

Login, registration, logout, profile updates and password flows. Successful
flows write the issued token and user into the CredentialStore; failures are
returned as AuthResult with a user-facing message rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from storefront.auth.credentials import CredentialStore
from storefront.data.endpoints import AuthAPI, UsersAPI
from storefront.exceptions import HttpError, ResponseFormatError, StorefrontError, describe_error
from storefront.logging import get_logger
from storefront.types import ApiResponse, Credential

if TYPE_CHECKING:
    from storefront.transport.client import ApiTransport

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an authentication flow."""

    success: bool
    user: dict[str, Any] | None = None
    error: str | None = None


def _user_from(response: ApiResponse) -> dict[str, Any]:
    user = response.get_field("user")
    if not isinstance(user, dict):
        raise ResponseFormatError(
            response.status_code,
            response.body,
            message="Response carried no user record",
        )
    return user


def _credential_from(response: ApiResponse) -> Credential:
    token = response.get_field("token")
    if not isinstance(token, str) or not token:
        raise ResponseFormatError(
            response.status_code,
            response.body,
            message="Response carried no token",
        )
    refresh_token = response.get_field("refreshToken")
    return Credential(
        access_token=token,
        refresh_token=refresh_token if isinstance(refresh_token, str) else None,
    )


class AuthSession:
    """Signs users in and out against the backend.

    Usage:
        session = AuthSession(transport, credentials)
        result = await session.login({"email": "a@b.c", "password": "secret"})
        if result.success:
            print(result.user["firstName"])
    """

    def __init__(
        self,
        transport: ApiTransport,
        credentials: CredentialStore,
        messages: dict[str, str] | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            transport: Backend transport.
            credentials: Store receiving issued tokens and user.
            messages: User-facing error messages per kind.
        """
        self.credentials = credentials
        self.messages = messages
        self.auth = AuthAPI(transport)
        self.users = UsersAPI(transport)

    @property
    def user(self) -> dict[str, Any] | None:
        """The signed-in user, if any."""
        return self.credentials.user

    @property
    def is_authenticated(self) -> bool:
        """True when a credential is held."""
        return self.credentials.is_authenticated

    def restore(self) -> bool:
        """Reload a persisted session at startup."""
        return self.credentials.restore()

    def _failure(self, flow: str, error: StorefrontError, default: str) -> AuthResult:
        if isinstance(error, HttpError) and not isinstance(error, ResponseFormatError):
            message = error.server_message or default
        else:
            message = describe_error(error, self.messages)
        logger.warning("Authentication flow failed", flow=flow, error=str(error))
        return AuthResult(success=False, error=message)

    async def login(self, credentials: dict[str, Any]) -> AuthResult:
        """Sign in with email/password (or whatever the backend accepts)."""
        try:
            response = await self.auth.login(credentials)
            credential = _credential_from(response)
            user = _user_from(response)
        except StorefrontError as e:
            return self._failure("login", e, "Login failed")

        self.credentials.set_session(credential, user)
        logger.info("Signed in")
        return AuthResult(success=True, user=user)

    async def register(self, user_data: dict[str, Any]) -> AuthResult:
        """Create an account and sign in."""
        try:
            response = await self.auth.register(user_data)
            credential = _credential_from(response)
            user = _user_from(response)
        except StorefrontError as e:
            return self._failure("register", e, "Registration failed")

        self.credentials.set_session(credential, user)
        logger.info("Registered and signed in")
        return AuthResult(success=True, user=user)

    async def logout(self) -> AuthResult:
        """Sign out. Local credentials are cleared even if the backend call fails."""
        try:
            await self.auth.logout()
        except StorefrontError as e:
            logger.warning("Logout request failed", error=str(e))
        finally:
            self.credentials.clear()
        logger.info("Signed out")
        return AuthResult(success=True)

    async def update_profile(self, profile: dict[str, Any]) -> AuthResult:
        """Update the signed-in user's profile and the stored user record."""
        try:
            response = await self.users.update_profile(profile)
            user = _user_from(response)
        except StorefrontError as e:
            return self._failure("update_profile", e, "Profile update failed")

        self.credentials.update_user(user)
        return AuthResult(success=True, user=user)

    async def forgot_password(self, email: str) -> AuthResult:
        """Request a password reset email."""
        try:
            await self.auth.forgot_password(email)
        except StorefrontError as e:
            return self._failure("forgot_password", e, "Failed to send reset email")
        return AuthResult(success=True)

    async def reset_password(self, reset_token: str, password: str) -> AuthResult:
        """Set a new password from a reset link; signs the user in."""
        try:
            response = await self.auth.reset_password(reset_token, password)
            credential = _credential_from(response)
            user = _user_from(response)
        except StorefrontError as e:
            return self._failure("reset_password", e, "Password reset failed")

        self.credentials.set_session(credential, user)
        return AuthResult(success=True, user=user)

    async def update_password(self, current_password: str, new_password: str) -> AuthResult:
        """Change the signed-in user's password.

        A response carrying a fresh token replaces the stored credential.
        """
        try:
            response = await self.auth.update_password(
                {"currentPassword": current_password, "newPassword": new_password}
            )
        except StorefrontError as e:
            return self._failure("update_password", e, "Password update failed")

        token = response.get_field("token")
        if isinstance(token, str) and token:
            self.credentials.replace_credential(_credential_from(response))
        return AuthResult(success=True, user=self.credentials.user)
