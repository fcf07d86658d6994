"""
Authentication package: credential storage and session flows.
"""

from storefront.auth.credentials import (
    CredentialStore,
    InMemoryStorage,
    KeyValueStorage,
    SQLiteStorage,
    create_storage,
)
from storefront.auth.session import AuthResult, AuthSession

__all__ = [
    "AuthResult",
    "AuthSession",
    "CredentialStore",
    "InMemoryStorage",
    "KeyValueStorage",
    "SQLiteStorage",
    "create_storage",
]
