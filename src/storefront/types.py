"""
Core types for the storefront data-access layer.

This module defines the fundamental data structures used throughout the system:
- Frozen dataclasses for immutable values (Credential, CacheKey, CacheEntry)
- Request/response shapes exchanged with the transport (ApiRequest, ApiResponse)
- Helper functions for ID generation and canonical serialization
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

import orjson
from uuid6 import uuid7

T = TypeVar("T")


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "req")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def canonical_json(value: Any) -> str:
    """Serialize a value deterministically.

    Mapping keys are sorted and values orjson cannot encode natively are
    stringified, so structurally equal inputs always produce the same text.
    """
    return orjson.dumps(
        value,
        default=str,
        option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
    ).decode("utf-8")


@dataclass(frozen=True)
class Credential:
    """Bearer credential held by the credential store."""

    access_token: str
    refresh_token: str | None = None

    def __repr__(self) -> str:
        # Never leak tokens into logs
        return f"Credential(access_token='***', refresh_token={'***' if self.refresh_token else None})"


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key: operation tag plus canonicalized parameters.

    Two keys are equal when their operation and canonical parameter text are
    equal, regardless of the parameter mapping's insertion order.
    """

    operation: str
    params: str = ""

    @classmethod
    def build(cls, operation: str, params: Any = None) -> CacheKey:
        """Build a key from an operation name and a parameter structure.

        Args:
            operation: Logical operation name (e.g., "products").
            params: Parameters (dict, list, scalar). None means the
                operation takes no parameters.

        Returns:
            CacheKey with canonical parameter text.
        """
        if not operation:
            raise ValueError("CacheKey operation must not be empty")
        return cls(operation=operation, params=canonical_json(params) if params is not None else "")

    @classmethod
    def coerce(cls, key: CacheKey | str) -> CacheKey:
        """Accept a CacheKey or its rendered string form.

        "products_{}" parses to operation "products" with params {}; a string
        with no JSON suffix (e.g. "categories") is an operation without params.
        """
        if isinstance(key, CacheKey):
            return key
        if not key:
            raise ValueError("Cache key must not be empty")

        start = key.find("_")
        while start > 0:
            try:
                params = orjson.loads(key[start + 1 :])
            except orjson.JSONDecodeError:
                start = key.find("_", start + 1)
                continue
            return cls.build(key[:start], params)
        return cls(operation=key)

    def __str__(self) -> str:
        if not self.params:
            return self.operation
        return f"{self.operation}_{self.params}"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached value with the monotonic time it was stored."""

    value: T
    stored_at: float

    def age(self, now: float) -> float:
        """Seconds since the entry was stored."""
        return now - self.stored_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Whether the entry is still inside its freshness window."""
        return now - self.stored_at < ttl


@dataclass(frozen=True)
class ApiRequest:
    """One outbound HTTP call as seen by the transport.

    `auth_retried` marks a request that was already re-issued after a
    credential renewal; a second 401 for it is surfaced, not renewed again.
    """

    method: str
    path: str
    params: dict[str, Any] | None = None
    json: Any = None
    data: dict[str, Any] | None = None
    files: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    auth_retried: bool = False
    skip_auth_refresh: bool = False

    @property
    def is_multipart(self) -> bool:
        """True when the body is sent as multipart form data."""
        return self.files is not None

    def mark_auth_retried(self) -> ApiRequest:
        """Copy of this request carrying the retry marker."""
        return replace(self, auth_retried=True)

    def describe(self) -> str:
        """Short `METHOD /path` label for logs."""
        return f"{self.method.upper()} {self.path}"


@dataclass(frozen=True)
class ApiResponse:
    """Parsed backend response.

    The backend answers with `{success, data, message}` envelopes; bodies
    without an envelope are carried whole in `data`.
    """

    status_code: int
    data: Any = None
    success: bool = True
    message: str | None = None
    body: Any = None

    @classmethod
    def from_body(cls, status_code: int, body: Any) -> ApiResponse:
        """Build a response from a decoded JSON body."""
        if isinstance(body, dict) and "success" in body:
            return cls(
                status_code=status_code,
                data=body.get("data"),
                success=bool(body.get("success")),
                message=body.get("message"),
                body=body,
            )
        return cls(status_code=status_code, data=body, success=True, body=body)

    def get_field(self, name: str) -> Any:
        """Look up a field at the top level of the body, then under `data`."""
        if isinstance(self.body, dict):
            if name in self.body:
                return self.body[name]
            nested = self.body.get("data")
            if isinstance(nested, dict) and name in nested:
                return nested[name]
        if isinstance(self.data, dict):
            return self.data.get(name)
        return None
