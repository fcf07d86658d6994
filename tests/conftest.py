"""
Pytest configuration and fixtures for storefront data-access tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import patch

import httpx
import orjson
import pytest

from storefront.auth.credentials import CredentialStore, InMemoryStorage
from storefront.config import Settings, clear_settings_cache
from storefront.types import Credential

BASE_URL = "http://shop.test/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def json_response(status: int, body: Any) -> httpx.Response:
    """Build an httpx response carrying a JSON body."""
    return httpx.Response(
        status,
        content=orjson.dumps(body),
        headers={"Content-Type": "application/json"},
    )


def envelope(data: Any, status: int = 200, message: str | None = None) -> httpx.Response:
    """Build a `{success, data, message}` backend response."""
    body: dict[str, Any] = {"success": 200 <= status < 300, "data": data}
    if message is not None:
        body["message"] = message
    return json_response(status, body)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "API_BASE_URL": BASE_URL,
        "API_TIMEOUT_SECONDS": "5",
        "API_RETRY_ATTEMPTS": "2",
        "API_RETRY_DELAY_SECONDS": "0.01",
        "CACHE_TTL_SECONDS": "300",
        "CACHE_MAX_ENTRIES": "64",
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration (no .env file)."""
    settings = Settings(_env_file=None)
    yield settings
    clear_settings_cache()


@pytest.fixture
def credential_store() -> CredentialStore:
    """Provide an empty in-memory credential store."""
    return CredentialStore(InMemoryStorage())


@pytest.fixture
def signed_in_store(credential_store: CredentialStore) -> CredentialStore:
    """Provide a credential store holding a session."""
    credential_store.set_session(
        Credential(access_token="token-1", refresh_token="refresh-1"),
        {"id": 7, "email": "ada@example.com"},
    )
    return credential_store


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide a sleep that records delays without waiting."""
    return RecordingSleep()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
