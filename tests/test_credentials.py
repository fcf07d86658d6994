"""
Tests for the credential store and its storage backends.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from storefront.auth.credentials import (
    ACCESS_TOKEN_KEY,
    USER_KEY,
    CredentialStore,
    InMemoryStorage,
    SQLiteStorage,
    create_storage,
)
from storefront.types import Credential

USER = {"id": 7, "email": "ada@example.com"}


class TestCredentialStore:
    """Lifecycle of the stored credential."""

    def test_starts_empty(self, credential_store: CredentialStore) -> None:
        """Test a fresh store."""
        assert credential_store.credential is None
        assert credential_store.access_token is None
        assert credential_store.user is None
        assert credential_store.is_authenticated is False

    def test_set_session_then_clear(self, credential_store: CredentialStore) -> None:
        """Test that clear removes tokens and user together."""
        credential_store.set_session(Credential("t1", "r1"), USER)
        assert credential_store.access_token == "t1"
        assert credential_store.user == USER

        credential_store.clear()

        assert credential_store.credential is None
        assert credential_store.user is None

    def test_replace_credential_keeps_refresh_token(self, signed_in_store: CredentialStore) -> None:
        """Test that a renewal without a refresh token keeps the old one."""
        signed_in_store.replace_credential(Credential("token-2"))

        assert signed_in_store.access_token == "token-2"
        assert signed_in_store.credential.refresh_token == "refresh-1"
        assert signed_in_store.user is not None

    def test_replace_credential_rotates_refresh_token(
        self, signed_in_store: CredentialStore
    ) -> None:
        """Test that a new refresh token replaces the old one."""
        signed_in_store.replace_credential(Credential("token-2", "refresh-2"))

        assert signed_in_store.credential.refresh_token == "refresh-2"

    def test_version_bumps_on_changes(self, credential_store: CredentialStore) -> None:
        """Test that every credential change bumps the version."""
        versions = [credential_store.version]
        credential_store.set_session(Credential("t1"), USER)
        versions.append(credential_store.version)
        credential_store.replace_credential(Credential("t2"))
        versions.append(credential_store.version)
        credential_store.clear()
        versions.append(credential_store.version)

        assert versions == sorted(set(versions))

    def test_user_is_returned_as_copy(self, signed_in_store: CredentialStore) -> None:
        """Test that callers cannot mutate the stored user."""
        user = signed_in_store.user
        user["email"] = "mallory@example.com"

        assert signed_in_store.user["email"] == "ada@example.com"

    def test_credential_repr_hides_tokens(self) -> None:
        """Test that tokens never appear in repr."""
        text = repr(Credential("secret-access", "secret-refresh"))

        assert "secret" not in text


class TestPersistence:
    """Restore from durable storage."""

    def test_restore_from_sqlite(self, temp_dir: Path) -> None:
        """Test that a session survives a restart."""
        path = temp_dir / "auth" / "credentials.db"
        store = CredentialStore(SQLiteStorage(path))
        store.set_session(Credential("t1", "r1"), USER)
        store.close()

        restarted = CredentialStore(SQLiteStorage(path))
        assert restarted.restore() is True
        assert restarted.access_token == "t1"
        assert restarted.credential.refresh_token == "r1"
        assert restarted.user == USER
        restarted.close()

    def test_clear_is_persisted(self, temp_dir: Path) -> None:
        """Test that a cleared session is not restored."""
        path = temp_dir / "credentials.db"
        store = CredentialStore(SQLiteStorage(path))
        store.set_session(Credential("t1"), USER)
        store.clear()
        store.close()

        restarted = CredentialStore(SQLiteStorage(path))
        assert restarted.restore() is False
        restarted.close()

    def test_corrupt_user_record_clears_everything(self) -> None:
        """Test that an unreadable user drops the token too."""
        storage = InMemoryStorage()
        storage.set_many({ACCESS_TOKEN_KEY: "t1", USER_KEY: "{not json"})

        store = CredentialStore(storage)

        assert store.restore() is False
        assert storage.get(ACCESS_TOKEN_KEY) is None
        assert storage.get(USER_KEY) is None

    def test_token_without_user_is_not_restored(self) -> None:
        """Test that both token and user are required."""
        storage = InMemoryStorage()
        storage.set_many({ACCESS_TOKEN_KEY: "t1"})

        assert CredentialStore(storage).restore() is False

    def test_create_storage(self, temp_dir: Path) -> None:
        """Test backend selection by path."""
        assert isinstance(create_storage(None), InMemoryStorage)
        assert isinstance(create_storage(temp_dir / "c.db"), SQLiteStorage)


class TestSQLiteStorage:
    """Key-value semantics."""

    def test_set_many_with_none_deletes(self, temp_dir: Path) -> None:
        """Test that None values delete keys."""
        storage = SQLiteStorage(temp_dir / "kv.db")
        storage.set_many({"a": "1", "b": "2"})
        storage.set_many({"a": None, "b": "3"})

        assert storage.get("a") is None
        assert storage.get("b") == "3"
        storage.close()

    def test_delete_many(self, temp_dir: Path) -> None:
        """Test bulk deletion."""
        storage = SQLiteStorage(temp_dir / "kv.db")
        storage.set_many({"a": "1", "b": "2", "c": "3"})
        storage.delete_many(("a", "b"))

        assert storage.get("a") is None
        assert storage.get("c") == "3"
        storage.close()


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_backends_agree(backend: str, temp_dir: Path) -> None:
    """Test that both backends round-trip a session the same way."""
    storage = InMemoryStorage() if backend == "memory" else SQLiteStorage(temp_dir / "kv.db")
    store = CredentialStore(storage)
    store.set_session(Credential("t1"), USER)

    other = CredentialStore(storage)
    assert other.restore() is True
    assert other.user == USER
    store.close()
