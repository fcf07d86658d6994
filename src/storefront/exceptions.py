"""
Custom exception hierarchy for the storefront data-access layer.

All exceptions inherit from StorefrontError, which provides optional context
for structured error handling and logging. Every error carries an ErrorKind;
retry decisions and user-facing messages are driven by the kind, never by the
exception class name.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Coarse classification of failures."""

    NETWORK = "network"  # No response received
    TIMEOUT = "timeout"  # Deadline elapsed
    CANCELLED = "cancelled"  # Superseded or aborted by the caller
    HTTP = "http"  # Server returned a failure status
    AUTH_EXPIRED = "auth_expired"  # Credential renewal failed
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class StorefrontError(Exception):
    """Base exception for all storefront data-access errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(StorefrontError):
    """Raised when configuration is invalid or missing."""

    kind = ErrorKind.CONFIGURATION


class NetworkError(StorefrontError):
    """Raised when no response was received (DNS, connection reset, ...).

    Context should include:
        - method: HTTP method
        - path: Request path
        - error: Underlying transport error
    """

    kind = ErrorKind.NETWORK


class RequestTimeoutError(StorefrontError):
    """Raised when a deadline elapses before a response arrives.

    Context should include:
        - timeout: The deadline in seconds
    """

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if timeout is not None:
            ctx.setdefault("timeout", timeout)
        super().__init__(message, ctx)
        self.timeout = timeout


class HttpError(StorefrontError):
    """Raised when the backend returns a non-2xx status.

    Attributes:
        status: HTTP status code.
        body: Parsed response body (dict) or raw text.
    """

    kind = ErrorKind.HTTP

    def __init__(
        self,
        status: int,
        body: Any = None,
        message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx.setdefault("status", status)
        super().__init__(message or f"HTTP error {status}", ctx)
        self.status = status
        self.body = body

    @property
    def server_message(self) -> str | None:
        """The backend's `message` field, if the body carried one."""
        if isinstance(self.body, dict):
            message = self.body.get("message")
            if isinstance(message, str) and message:
                return message
        return None

    @property
    def is_unauthorized(self) -> bool:
        """True for 401 responses (credential expired)."""
        return self.status == 401


class ResponseFormatError(HttpError):
    """Raised when a 2xx response body is not valid JSON."""


class AuthExpiredError(StorefrontError):
    """Raised when credential renewal failed and credentials were cleared.

    Hosts map this to a sign-out and navigation away from authenticated views.
    """

    kind = ErrorKind.AUTH_EXPIRED


class FetchCancelledError(StorefrontError):
    """Raised to the caller of a fetch that was superseded by a newer call.

    This is not a user-visible error: it means "no result from this call".
    """

    kind = ErrorKind.CANCELLED


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception to an ErrorKind.

    Args:
        exc: The exception to classify.

    Returns:
        The error kind.
    """
    if isinstance(exc, StorefrontError):
        return exc.kind
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.NETWORK
    if isinstance(exc, httpx.HTTPStatusError):
        return ErrorKind.HTTP
    return ErrorKind.UNKNOWN


def describe_error(exc: BaseException, messages: dict[str, str] | None = None) -> str:
    """Derive the message shown to users for a failure.

    The backend's own message wins when present; otherwise a default per
    error kind (and per status for HTTP errors) is used.

    Args:
        exc: The failure.
        messages: Message table (defaults to settings ERROR_MESSAGES).

    Returns:
        User-facing message string.
    """
    if messages is None:
        from storefront.config import DEFAULT_ERROR_MESSAGES

        messages = DEFAULT_ERROR_MESSAGES

    general = messages.get("general", "Something went wrong.")

    if isinstance(exc, HttpError):
        if exc.server_message:
            return exc.server_message
        if exc.status in (401, 403):
            return messages.get("unauthorized", general)
        if exc.status == 404:
            return messages.get("not_found", general)
        if exc.status in (400, 422):
            return messages.get("validation", general)
        return general

    kind = classify_error(exc)
    if kind is ErrorKind.NETWORK:
        return messages.get("network", general)
    if kind is ErrorKind.TIMEOUT:
        return messages.get("timeout", general)
    if kind is ErrorKind.AUTH_EXPIRED:
        return messages.get("session_expired", general)
    return general
