"""
Tests for core value types.
"""

from __future__ import annotations

import pytest

from storefront.types import (
    ApiRequest,
    ApiResponse,
    CacheEntry,
    CacheKey,
    canonical_json,
    generate_id,
)


class TestCacheKey:
    """Structured cache keys."""

    def test_parameter_order_does_not_matter(self) -> None:
        """Test that equal mappings build equal keys."""
        a = CacheKey.build("products", {"page": 1, "limit": 12})
        b = CacheKey.build("products", {"limit": 12, "page": 1})

        assert a == b
        assert hash(a) == hash(b)

    def test_none_and_empty_params_differ(self) -> None:
        """Test that no params and empty params are distinct keys."""
        assert CacheKey.build("products") != CacheKey.build("products", {})
        assert str(CacheKey.build("categories")) == "categories"
        assert str(CacheKey.build("products", {})) == "products_{}"

    def test_empty_operation_rejected(self) -> None:
        """Test that an operation name is required."""
        with pytest.raises(ValueError):
            CacheKey.build("")

    def test_coerce_parses_rendered_keys(self) -> None:
        """Test that string keys map to the structured key they render from."""
        key = CacheKey.build("products", {"page": 2, "category": "shoes"})

        assert CacheKey.coerce(str(key)) == key
        assert CacheKey.coerce('products_{"page":2,"category":"shoes"}') == key
        assert CacheKey.coerce("categories") == CacheKey.build("categories")

    def test_coerce_handles_underscores_in_operation(self) -> None:
        """Test that underscores inside the operation name are kept."""
        key = CacheKey.build("site_settings", {"locale": "en"})

        assert CacheKey.coerce(str(key)) == key
        assert CacheKey.coerce("site_settings") == CacheKey(operation="site_settings")

    def test_coerce_passes_keys_through(self) -> None:
        """Test identity for structured keys."""
        key = CacheKey.build("product", 5)

        assert CacheKey.coerce(key) is key


class TestCanonicalJson:
    """canonical_json."""

    def test_sorted_nested_keys(self) -> None:
        """Test that nested mappings are sorted too."""
        assert canonical_json({"b": {"y": 1, "x": 2}, "a": [3]}) == '{"a":[3],"b":{"x":2,"y":1}}'

    def test_unsupported_values_are_stringified(self) -> None:
        """Test the str() fallback."""
        assert canonical_json({"d": complex(1, 2)}) == '{"d":"(1+2j)"}'


class TestCacheEntry:
    """Freshness window."""

    def test_fresh_until_ttl(self) -> None:
        """Test the open upper bound of the window."""
        entry = CacheEntry(value="x", stored_at=100.0)

        assert entry.is_fresh(now=399.9, ttl=300.0) is True
        assert entry.is_fresh(now=400.0, ttl=300.0) is False
        assert entry.age(now=150.0) == 50.0


class TestApiResponse:
    """Envelope parsing."""

    def test_envelope(self) -> None:
        """Test a `{success, data, message}` body."""
        response = ApiResponse.from_body(200, {"success": True, "data": [1], "message": "ok"})

        assert response.data == [1]
        assert response.success is True
        assert response.message == "ok"

    def test_bare_body(self) -> None:
        """Test that a body without an envelope is carried whole."""
        response = ApiResponse.from_body(200, [{"id": 1}])

        assert response.data == [{"id": 1}]
        assert response.success is True

    def test_get_field_looks_top_level_then_data(self) -> None:
        """Test token lookup in either position."""
        top = ApiResponse.from_body(200, {"success": True, "token": "a", "data": {"token": "b"}})
        nested = ApiResponse.from_body(200, {"success": True, "data": {"token": "b"}})
        bare = ApiResponse.from_body(200, {"data": {"accessToken": "c"}})

        assert top.get_field("token") == "a"
        assert nested.get_field("token") == "b"
        assert bare.get_field("accessToken") == "c"
        assert nested.get_field("missing") is None


class TestApiRequest:
    """Request helpers."""

    def test_mark_auth_retried_copies(self) -> None:
        """Test that the marker is set on a copy."""
        request = ApiRequest("get", "/products")
        retried = request.mark_auth_retried()

        assert request.auth_retried is False
        assert retried.auth_retried is True
        assert retried.describe() == "GET /products"

    def test_multipart_detection(self) -> None:
        """Test is_multipart."""
        assert ApiRequest("POST", "/upload", files={"file": b"x"}).is_multipart is True
        assert ApiRequest("POST", "/auth/login", json={}).is_multipart is False


def test_generate_id_prefix() -> None:
    """Test prefixed, unique IDs."""
    first = generate_id("req")
    second = generate_id("req")

    assert first.startswith("req_")
    assert first != second
    assert "_" not in generate_id()
