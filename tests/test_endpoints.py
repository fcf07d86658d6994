"""
Tests for the thin REST endpoint wrappers.
"""

from __future__ import annotations

import httpx
import orjson
import pytest

from conftest import BASE_URL, envelope
from storefront.auth.credentials import CredentialStore
from storefront.data.endpoints import CategoriesAPI, CmsAPI, ProductsAPI, UploadAPI
from storefront.transport.client import ApiTransport


@pytest.fixture
def recorded(signed_in_store: CredentialStore):
    """Transport that records requests and answers with an empty envelope."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return envelope({"ok": True})

    transport = ApiTransport(BASE_URL, signed_in_store, http_transport=httpx.MockTransport(handler))
    return transport, seen


class TestCatalogEndpoints:
    """Products and categories."""

    @pytest.mark.asyncio
    async def test_product_routes(self, recorded) -> None:
        """Test product paths and query params."""
        transport, seen = recorded
        products = ProductsAPI(transport)

        await products.get_by_id(42)
        await products.get_featured({"limit": 4})
        await products.get_by_category("shoes", {"page": 2})
        await products.search("trail", {"page": 1})
        await transport.close()

        assert [r.url.path for r in seen] == [
            "/api/products/42",
            "/api/products/featured",
            "/api/products/category/shoes",
            "/api/products/search",
        ]
        assert seen[1].url.params["limit"] == "4"
        assert seen[3].url.params["q"] == "trail"
        assert seen[3].url.params["page"] == "1"

    @pytest.mark.asyncio
    async def test_category_by_id(self, recorded) -> None:
        """Test the single-category path."""
        transport, seen = recorded

        await CategoriesAPI(transport).get_by_id(3)
        await transport.close()

        assert seen[0].url.path == "/api/categories/3"


class TestCmsEndpoints:
    """Content management calls."""

    @pytest.mark.asyncio
    async def test_set_featured_products_body(self, recorded) -> None:
        """Test the featured selection payload."""
        transport, seen = recorded

        await CmsAPI(transport).set_featured_products([1, 2, 3])
        await transport.close()

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/cms/featured-products"
        assert orjson.loads(seen[0].content) == {"productIds": [1, 2, 3]}

    @pytest.mark.asyncio
    async def test_banners_by_location(self, recorded) -> None:
        """Test the banner location path segment."""
        transport, seen = recorded

        await CmsAPI(transport).get_banners("hero")
        await transport.close()

        assert seen[0].url.path == "/api/cms/banners/hero"


class TestUploadEndpoints:
    """Multipart uploads."""

    @pytest.mark.asyncio
    async def test_upload_file(self, recorded) -> None:
        """Test a single-file upload."""
        transport, seen = recorded

        await UploadAPI(transport).upload_file(("a.png", b"\x89PNG", "image/png"), kind="product")
        await transport.close()

        assert seen[0].url.path == "/api/upload"
        assert seen[0].headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="file"; filename="a.png"' in seen[0].content
        assert b"product" in seen[0].content

    @pytest.mark.asyncio
    async def test_upload_multiple(self, recorded) -> None:
        """Test that each file is sent under the repeated `files` field."""
        transport, seen = recorded

        await UploadAPI(transport).upload_multiple(
            [("a.png", b"a", "image/png"), ("b.png", b"b", "image/png")]
        )
        await transport.close()

        assert seen[0].url.path == "/api/upload/multiple"
        assert seen[0].content.count(b'name="files"') == 2
