"""
Process-wide credential store with durable key-value persistence.

The store owns exactly one Credential (or none) plus the serialized current
user. Reads are served from memory; every mutation is written through to a
KeyValueStorage backend. Clearing removes tokens and user in one transaction.
"""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import orjson

from storefront.logging import get_logger
from storefront.types import Credential

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"

AUTH_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class KeyValueStorage(ABC):
    """Durable string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Get a value, or None if absent."""
        ...

    @abstractmethod
    def set_many(self, items: dict[str, str | None]) -> None:
        """Atomically write values; a None value deletes the key."""
        ...

    @abstractmethod
    def delete_many(self, keys: tuple[str, ...]) -> None:
        """Atomically delete keys."""
        ...

    def close(self) -> None:
        """Release any resources."""


class InMemoryStorage(KeyValueStorage):
    """Dict-backed storage for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set_many(self, items: dict[str, str | None]) -> None:
        for key, value in items.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def delete_many(self, keys: tuple[str, ...]) -> None:
        for key in keys:
            self._data.pop(key, None)


class SQLiteStorage(KeyValueStorage):
    """SQLite-backed key-value storage.

    Each write is a single transaction, so a logout or failed renewal can
    never leave a token without its user (or the reverse) on disk.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize SQLiteStorage.

        Args:
            db_path: Path to the SQLite file.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            self._conn.commit()
        return self._conn

    def get(self, key: str) -> str | None:
        row = self._get_conn().execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_many(self, items: dict[str, str | None]) -> None:
        conn = self._get_conn()
        with conn:
            for key, value in items.items():
                if value is None:
                    conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                else:
                    conn.execute(
                        "INSERT INTO kv (key, value) VALUES (?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                        (key, value),
                    )

    def delete_many(self, keys: tuple[str, ...]) -> None:
        conn = self._get_conn()
        with conn:
            conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class CredentialStore:
    """Holds the current credential and user for the process.

    Lifecycle: set on login/registration, replaced on renewal, cleared on
    logout or renewal failure. Successful API calls never touch it.
    """

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        """Initialize the store.

        Args:
            storage: Durable backend. Defaults to in-memory storage.
        """
        self._storage = storage or InMemoryStorage()
        self._credential: Credential | None = None
        self._user: dict[str, Any] | None = None
        self._version = 0
        self._lock = threading.Lock()

    @property
    def credential(self) -> Credential | None:
        """The current credential, if any."""
        with self._lock:
            return self._credential

    @property
    def access_token(self) -> str | None:
        """The current access token, if any."""
        credential = self.credential
        return credential.access_token if credential else None

    @property
    def user(self) -> dict[str, Any] | None:
        """The current user record, if any."""
        with self._lock:
            return dict(self._user) if self._user is not None else None

    @property
    def is_authenticated(self) -> bool:
        """True when an access token is held."""
        return self.credential is not None

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every credential change."""
        with self._lock:
            return self._version

    def restore(self) -> bool:
        """Load persisted credentials into memory.

        A token without a readable user record is discarded together with
        the record.

        Returns:
            True if a session was restored.
        """
        token = self._storage.get(ACCESS_TOKEN_KEY)
        raw_user = self._storage.get(USER_KEY)

        if not token or not raw_user:
            return False

        try:
            user = orjson.loads(raw_user)
        except orjson.JSONDecodeError as e:
            logger.error("Error parsing stored user data", error=str(e))
            self.clear()
            return False

        with self._lock:
            self._credential = Credential(
                access_token=token,
                refresh_token=self._storage.get(REFRESH_TOKEN_KEY),
            )
            self._user = user
            self._version += 1

        logger.debug("Restored persisted session")
        return True

    def set_session(self, credential: Credential, user: dict[str, Any] | None = None) -> None:
        """Store a new credential (and user) after login or registration."""
        with self._lock:
            self._storage.set_many({
                ACCESS_TOKEN_KEY: credential.access_token,
                REFRESH_TOKEN_KEY: credential.refresh_token,
                USER_KEY: orjson.dumps(user).decode("utf-8") if user is not None else None,
            })
            self._credential = credential
            self._user = user
            self._version += 1

    def replace_credential(self, credential: Credential) -> None:
        """Replace the credential after a successful renewal.

        The refresh token is kept when the renewal response omitted one.
        """
        with self._lock:
            refresh_token = credential.refresh_token
            if refresh_token is None and self._credential is not None:
                refresh_token = self._credential.refresh_token
            new_credential = Credential(
                access_token=credential.access_token,
                refresh_token=refresh_token,
            )
            self._storage.set_many({
                ACCESS_TOKEN_KEY: new_credential.access_token,
                REFRESH_TOKEN_KEY: new_credential.refresh_token,
            })
            self._credential = new_credential
            self._version += 1

    def update_user(self, user: dict[str, Any]) -> None:
        """Replace the stored user record (profile updates)."""
        with self._lock:
            self._storage.set_many({USER_KEY: orjson.dumps(user).decode("utf-8")})
            self._user = user

    def clear(self) -> None:
        """Clear tokens and user atomically."""
        with self._lock:
            self._storage.delete_many(AUTH_KEYS)
            self._credential = None
            self._user = None
            self._version += 1

    def close(self) -> None:
        """Close the storage backend."""
        self._storage.close()


def create_storage(path: Path | None) -> KeyValueStorage:
    """Pick a storage backend for a configured path."""
    if path is None:
        return InMemoryStorage()
    return SQLiteStorage(path)
