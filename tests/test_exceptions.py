"""
Tests for error classification and user-facing messages.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from storefront.config import DEFAULT_ERROR_MESSAGES
from storefront.exceptions import (
    AuthExpiredError,
    ConfigurationError,
    ErrorKind,
    FetchCancelledError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    ResponseFormatError,
    StorefrontError,
    classify_error,
    describe_error,
)


class TestStorefrontError:
    """Base exception formatting."""

    def test_str_includes_context(self) -> None:
        """Test that context is rendered after the message."""
        error = StorefrontError("boom", context={"path": "/products"})

        assert str(error) == "boom (path='/products')"
        assert error.kind is ErrorKind.UNKNOWN

    def test_timeout_records_deadline(self) -> None:
        """Test that the timeout lands in context."""
        error = RequestTimeoutError("slow", timeout=2.5)

        assert error.timeout == 2.5
        assert error.context["timeout"] == 2.5

    def test_http_error_defaults(self) -> None:
        """Test the default message and status context."""
        error = HttpError(503)

        assert error.message == "HTTP error 503"
        assert error.context["status"] == 503
        assert error.server_message is None
        assert error.is_unauthorized is False

    def test_response_format_error_is_http_error(self) -> None:
        """Test the subclass relation."""
        assert isinstance(ResponseFormatError(200, "<html>"), HttpError)


class TestClassifyError:
    """classify_error."""

    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (NetworkError("down"), ErrorKind.NETWORK),
            (RequestTimeoutError("slow"), ErrorKind.TIMEOUT),
            (HttpError(500), ErrorKind.HTTP),
            (AuthExpiredError("expired"), ErrorKind.AUTH_EXPIRED),
            (ConfigurationError("bad url"), ErrorKind.CONFIGURATION),
            (FetchCancelledError("superseded"), ErrorKind.CANCELLED),
            (asyncio.CancelledError(), ErrorKind.CANCELLED),
            (TimeoutError(), ErrorKind.TIMEOUT),
            (httpx.ConnectError("refused"), ErrorKind.NETWORK),
            (ValueError("bad"), ErrorKind.UNKNOWN),
        ],
    )
    def test_kinds(self, exc: BaseException, kind: ErrorKind) -> None:
        """Test classification of library and builtin errors."""
        assert classify_error(exc) is kind


class TestDescribeError:
    """describe_error."""

    def test_server_message_wins(self) -> None:
        """Test that the backend's message is shown as-is."""
        error = HttpError(400, {"message": "Email already registered"})

        assert describe_error(error) == "Email already registered"

    @pytest.mark.parametrize(
        ("status", "kind"),
        [(401, "unauthorized"), (403, "unauthorized"), (404, "not_found"), (422, "validation"), (500, "general")],
    )
    def test_status_defaults(self, status: int, kind: str) -> None:
        """Test per-status default messages."""
        assert describe_error(HttpError(status)) == DEFAULT_ERROR_MESSAGES[kind]

    def test_kind_defaults(self) -> None:
        """Test per-kind default messages."""
        assert describe_error(NetworkError("x")) == DEFAULT_ERROR_MESSAGES["network"]
        assert describe_error(RequestTimeoutError("x")) == DEFAULT_ERROR_MESSAGES["timeout"]
        assert describe_error(AuthExpiredError("x")) == DEFAULT_ERROR_MESSAGES["session_expired"]
        assert describe_error(RuntimeError("x")) == DEFAULT_ERROR_MESSAGES["general"]

    def test_custom_message_table(self) -> None:
        """Test that a custom table overrides defaults."""
        messages = {"general": "Oops", "network": "You are offline"}

        assert describe_error(NetworkError("x"), messages) == "You are offline"
        assert describe_error(HttpError(404), messages) == "Oops"
