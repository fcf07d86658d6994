"""
Domain facade for storefront data.

Each accessor names one backend resource, builds its canonical cache key and
reads through the result cache; cache misses go through the retry executor to
the transport. Accessors return the envelope's `data` payload.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from storefront.cache.ttl_cache import ResultCache
from storefront.data.endpoints import CategoriesAPI, CmsAPI, ProductsAPI
from storefront.exceptions import FetchCancelledError
from storefront.logging import get_logger, log_context
from storefront.resilience.executor import NO_FALLBACK, RetryExecutor
from storefront.types import ApiResponse, CacheKey, generate_id

if TYPE_CHECKING:
    from storefront.transport.client import ApiTransport

logger = get_logger(__name__)

# Operation names double as cache key tags
PRODUCTS = "products"
PRODUCT = "product"
PRODUCT_SEARCH = "product_search"
CATEGORY_PRODUCTS = "category_products"
CATEGORIES = "categories"
NAVIGATION = "navigation"
FEATURED = "featured"
HOMEPAGE = "homepage"
BANNERS = "banners"
SITE_SETTINGS = "site_settings"

HOMEPAGE_SECTION = "homepage"

OPERATIONS = frozenset({
    PRODUCTS,
    PRODUCT,
    PRODUCT_SEARCH,
    CATEGORY_PRODUCTS,
    CATEGORIES,
    NAVIGATION,
    FEATURED,
    HOMEPAGE,
    BANNERS,
    SITE_SETTINGS,
})


def product_key(product_id: str | int) -> CacheKey:
    return CacheKey.build(PRODUCT, str(product_id))


def featured_key(section: str) -> CacheKey:
    return CacheKey.build(FEATURED, {"section": section})


def banners_key(location: str) -> CacheKey:
    return CacheKey.build(BANNERS, {"location": location})


# Single-value operations also accept the shorthand "<operation>_<value>"
SHORTHAND_KEYS: dict[str, Callable[[str], CacheKey]] = {
    PRODUCT: product_key,
    FEATURED: featured_key,
    BANNERS: banners_key,
}


def resolve_key(key: CacheKey | str) -> CacheKey:
    """Map a key or its string form to the key an accessor writes.

    Besides rendered keys (`featured_{"section":"homepage"}`), shorthand
    strings such as `featured_homepage`, `banners_hero` or `product_42` name
    the entry for that single value.
    """
    parsed = CacheKey.coerce(key)
    if isinstance(key, CacheKey) or (
        parsed.operation in OPERATIONS and parsed.operation not in SHORTHAND_KEYS
    ):
        return parsed
    for operation, build in SHORTHAND_KEYS.items():
        prefix = f"{operation}_"
        value = key[len(prefix) :]
        if key.startswith(prefix) and value and value[0] not in "{[\"":
            return build(value)
    return parsed


class StorefrontDataService:
    """Cached, retried accessors for catalog, navigation and content.

    Usage:
        service = StorefrontDataService(transport, cache, executor)
        categories = await service.get_categories()
        products = await service.get_products({"page": 2}, call_site="grid")
        service.clear_cache()
    """

    def __init__(
        self,
        transport: ApiTransport,
        cache: ResultCache,
        executor: RetryExecutor,
        ttl: float | None = None,
        serve_stale_on_error: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            transport: Backend transport.
            cache: Result cache shared by all accessors.
            executor: Retry executor for cache misses.
            ttl: Freshness window in seconds (default: the cache's).
            serve_stale_on_error: Serve expired entries when a refetch fails.
        """
        self.transport = transport
        self.cache = cache
        self.executor = executor
        self.ttl = ttl
        self.serve_stale_on_error = serve_stale_on_error

        self.products = ProductsAPI(transport)
        self.categories = CategoriesAPI(transport)
        self.cms = CmsAPI(transport)

    async def _read(
        self,
        key: CacheKey,
        request: Callable[[], Awaitable[ApiResponse]],
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Read one resource through cache and executor.

        The fallback is applied here, outside the cache, so it is never stored.
        """

        async def fetch() -> Any:
            response = await self.executor.execute(request, name=key.operation)
            return response.data

        with log_context(request_id=generate_id("req"), operation=key.operation, call_site=call_site):
            try:
                return await self.cache.get(
                    key,
                    fetch,
                    ttl=self.ttl,
                    force_refresh=force_refresh,
                    call_site=call_site,
                    serve_stale_on_error=self.serve_stale_on_error,
                )
            except FetchCancelledError:
                raise
            except Exception as e:
                if fallback is NO_FALLBACK:
                    raise
                logger.warning("Serving fallback data", key=str(key), error=str(e))
                return fallback

    # ==================== Catalog ====================

    async def get_products(
        self,
        params: dict[str, Any] | None = None,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Product listing (filters, pagination, sorting in params)."""
        params = params or {}
        return await self._read(
            CacheKey.build(PRODUCTS, params),
            lambda: self.products.get_all(params),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_product(
        self,
        product_id: str | int,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Single product detail."""
        return await self._read(
            product_key(product_id),
            lambda: self.products.get_by_id(product_id),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def search_products(
        self,
        query: str,
        params: dict[str, Any] | None = None,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Full-text product search."""
        params = params or {}
        return await self._read(
            CacheKey.build(PRODUCT_SEARCH, {"q": query, **params}),
            lambda: self.products.search(query, params),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_products_by_category(
        self,
        category_id: str | int,
        params: dict[str, Any] | None = None,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Products within one category."""
        params = params or {}
        return await self._read(
            CacheKey.build(CATEGORY_PRODUCTS, {"category": str(category_id), **params}),
            lambda: self.products.get_by_category(category_id, params),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_categories(
        self,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """All categories."""
        return await self._read(
            CacheKey.build(CATEGORIES),
            self.categories.get_all,
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    # ==================== Content ====================

    async def get_navigation_menus(
        self,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Site navigation menus."""
        return await self._read(
            CacheKey.build(NAVIGATION),
            self.cms.get_navigation_menus,
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_featured_products(
        self,
        section: str = HOMEPAGE_SECTION,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Featured products for one page section."""
        return await self._read(
            featured_key(section),
            lambda: self.cms.get_featured_products({"section": section}),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_homepage_content(
        self,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Homepage content blocks."""
        return await self._read(
            CacheKey.build(HOMEPAGE),
            self.cms.get_homepage_content,
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_banners(
        self,
        location: str,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Banners placed at one location."""
        return await self._read(
            banners_key(location),
            lambda: self.cms.get_banners(location),
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    async def get_site_settings(
        self,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
        fallback: Any = NO_FALLBACK,
    ) -> Any:
        """Public site settings."""
        return await self._read(
            CacheKey.build(SITE_SETTINGS),
            self.cms.get_site_settings,
            force_refresh=force_refresh,
            call_site=call_site,
            fallback=fallback,
        )

    # ==================== Mutations ====================

    async def update_homepage_content(self, content: dict[str, Any]) -> Any:
        """Save homepage content and drop the cached copy."""
        response = await self.cms.update_homepage_content(content)
        self.cache.invalidate_operation(HOMEPAGE)
        return response.data

    async def update_navigation_menus(self, menus: Any) -> Any:
        """Save navigation menus and drop the cached copy."""
        response = await self.cms.update_navigation_menus(menus)
        self.cache.invalidate_operation(NAVIGATION)
        return response.data

    async def set_featured_products(self, product_ids: list[Any]) -> Any:
        """Replace featured products and drop every cached section."""
        response = await self.cms.set_featured_products(product_ids)
        self.cache.invalidate_operation(FEATURED)
        return response.data

    async def update_site_settings(self, settings: dict[str, Any]) -> Any:
        """Save site settings and drop the cached copy."""
        response = await self.cms.update_site_settings(settings)
        self.cache.invalidate_operation(SITE_SETTINGS)
        return response.data

    # ==================== Cache control ====================

    def clear_cache(self, key: CacheKey | str | None = None) -> int:
        """Evict one entry, or everything.

        Args:
            key: A CacheKey, its rendered string, or a single-value shorthand
                such as "featured_homepage". None clears the whole cache.

        Returns:
            Number of entries removed.
        """
        return self.cache.invalidate(None if key is None else resolve_key(key))

    async def preload_critical_data(self) -> dict[str, bool]:
        """Warm categories, navigation and homepage featured products.

        The three reads run concurrently; a failing one is logged and does
        not affect the others.

        Returns:
            Resource name to whether it loaded.
        """
        reads = {
            CATEGORIES: self.get_categories(),
            NAVIGATION: self.get_navigation_menus(),
            FEATURED: self.get_featured_products(HOMEPAGE_SECTION),
        }
        results = await asyncio.gather(*reads.values(), return_exceptions=True)

        outcome: dict[str, bool] = {}
        for name, result in zip(reads, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("Failed to preload critical data", resource=name, error=str(result))
                outcome[name] = False
            else:
                outcome[name] = True

        logger.info(
            "Preloaded critical data",
            loaded=sum(outcome.values()),
            failed=len(outcome) - sum(outcome.values()),
        )
        return outcome
