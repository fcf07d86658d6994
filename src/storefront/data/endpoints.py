"""
REST endpoint wrappers for the storefront backend.

Each class groups the calls for one backend resource and returns the raw
ApiResponse; caching and retries are layered on top by StorefrontDataService.
Provides access to:
- Authentication (login, registration, password flows)
- Products and categories
- Content management (homepage, navigation, featured products, banners, settings)
- User profile
- File uploads (multipart)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO

from storefront.types import ApiResponse

if TYPE_CHECKING:
    from storefront.transport.client import ApiTransport

UploadFile = tuple[str, bytes | BinaryIO, str]  # (filename, content, content type)


def _merge_params(params: dict[str, Any] | None, **extra: Any) -> dict[str, Any] | None:
    merged = {**extra, **(params or {})}
    return {k: v for k, v in merged.items() if v is not None} or None


class AuthAPI:
    """Authentication endpoints."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def login(self, credentials: dict[str, Any]) -> ApiResponse:
        return await self.transport.post("/auth/login", credentials)

    async def register(self, user_data: dict[str, Any]) -> ApiResponse:
        return await self.transport.post("/auth/register", user_data)

    async def logout(self) -> ApiResponse:
        return await self.transport.post("/auth/logout")

    async def forgot_password(self, email: str) -> ApiResponse:
        return await self.transport.post("/auth/forgot-password", {"email": email})

    async def reset_password(self, token: str, password: str) -> ApiResponse:
        return await self.transport.patch(f"/auth/reset-password/{token}", {"password": password})

    async def update_password(self, passwords: dict[str, Any]) -> ApiResponse:
        return await self.transport.patch("/auth/update-password", passwords)


class ProductsAPI:
    """Catalog product endpoints."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def get_all(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return await self.transport.get("/products", params=params)

    async def get_by_id(self, product_id: str | int) -> ApiResponse:
        return await self.transport.get(f"/products/{product_id}")

    async def get_featured(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return await self.transport.get("/products/featured", params=params)

    async def get_by_category(
        self,
        category_id: str | int,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        return await self.transport.get(f"/products/category/{category_id}", params=params)

    async def search(self, query: str, params: dict[str, Any] | None = None) -> ApiResponse:
        """Full-text product search (`q` plus any filter params)."""
        return await self.transport.get("/products/search", params=_merge_params(params, q=query))


class CategoriesAPI:
    """Category endpoints."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def get_all(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return await self.transport.get("/categories", params=params)

    async def get_by_id(self, category_id: str | int) -> ApiResponse:
        return await self.transport.get(f"/categories/{category_id}")


class CmsAPI:
    """Content management endpoints."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def get_homepage_content(self) -> ApiResponse:
        return await self.transport.get("/cms/homepage")

    async def update_homepage_content(self, content: dict[str, Any]) -> ApiResponse:
        return await self.transport.put("/cms/homepage", content)

    async def get_navigation_menus(self) -> ApiResponse:
        return await self.transport.get("/cms/navigation")

    async def update_navigation_menus(self, menus: Any) -> ApiResponse:
        return await self.transport.put("/cms/navigation", menus)

    async def get_featured_products(self, params: dict[str, Any] | None = None) -> ApiResponse:
        return await self.transport.get("/cms/featured-products", params=params)

    async def set_featured_products(self, product_ids: list[Any]) -> ApiResponse:
        return await self.transport.post("/cms/featured-products", {"productIds": product_ids})

    async def get_banners(self, location: str) -> ApiResponse:
        return await self.transport.get(f"/cms/banners/{location}")

    async def get_site_settings(self) -> ApiResponse:
        return await self.transport.get("/cms/settings")

    async def update_site_settings(self, settings: dict[str, Any]) -> ApiResponse:
        return await self.transport.put("/cms/settings", settings)


class UsersAPI:
    """Current-user profile endpoints."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def get_profile(self) -> ApiResponse:
        return await self.transport.get("/users/profile")

    async def update_profile(self, user_data: dict[str, Any]) -> ApiResponse:
        return await self.transport.put("/users/profile", user_data)


class UploadAPI:
    """Multipart file uploads."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def upload_file(self, file: UploadFile, kind: str = "general") -> ApiResponse:
        """Upload one file under the `file` form field."""
        return await self.transport.upload("/upload", files={"file": file}, data={"type": kind})

    async def upload_multiple(self, files: list[UploadFile], kind: str = "general") -> ApiResponse:
        """Upload several files under the repeated `files` form field."""
        return await self.transport.upload(
            "/upload/multiple",
            files=[("files", f) for f in files],
            data={"type": kind},
        )
