"""
Explicitly constructed data-access context.

DataContext owns one credential store, transport, executor, cache, facade and
auth session. Hosts build one per process (or per tenant/test) and pass it
around instead of relying on module-level singletons.
"""

from __future__ import annotations

from typing import Any

import httpx

from storefront.auth.credentials import CredentialStore, create_storage
from storefront.auth.session import AuthSession
from storefront.cache.ttl_cache import ResultCache
from storefront.config import Settings, get_settings
from storefront.data.query import Accessor, LiveQuery
from storefront.data.service import StorefrontDataService
from storefront.logging import get_logger
from storefront.resilience.executor import RetryExecutor
from storefront.transport.client import ApiTransport
from storefront.transport.refresh import AuthExpiredHook

logger = get_logger(__name__)


class DataContext:
    """Holder of every data-access component, with an explicit lifecycle.

    Usage:
        async with DataContext(on_auth_expired=redirect_to_login) as ctx:
            await ctx.service.preload_critical_data()
            products = await ctx.service.get_products({"page": 1})
    """

    def __init__(
        self,
        settings: Settings | None = None,
        credentials: CredentialStore | None = None,
        on_auth_expired: AuthExpiredHook | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        serve_stale_on_error: bool = False,
    ) -> None:
        """Build the component graph from settings.

        Args:
            settings: Settings (default: get_settings()).
            credentials: Credential store (default: from CREDENTIALS_PATH).
            on_auth_expired: Host hook for failed credential renewal.
            http_transport: Optional httpx transport (tests use MockTransport).
            serve_stale_on_error: Serve expired cache entries when refetch fails.
        """
        self.settings = settings or get_settings()
        self.credentials = credentials or CredentialStore(
            create_storage(self.settings.CREDENTIALS_PATH)
        )
        self.transport = ApiTransport(
            self.settings.base_url,
            self.credentials,
            timeout=self.settings.timeout_seconds,
            refresh_path=self.settings.AUTH_REFRESH_PATH,
            on_auth_expired=on_auth_expired,
            http_transport=http_transport,
        )
        self.executor = RetryExecutor(
            timeout=self.settings.timeout_seconds,
            max_retries=self.settings.retry_attempts,
            retry_delay=self.settings.retry_delay,
        )
        self.cache = ResultCache(
            ttl=self.settings.cache_ttl,
            max_entries=self.settings.CACHE_MAX_ENTRIES,
        )
        self.service = StorefrontDataService(
            self.transport,
            self.cache,
            self.executor,
            serve_stale_on_error=serve_stale_on_error,
        )
        self.session = AuthSession(
            self.transport,
            self.credentials,
            messages=self.settings.ERROR_MESSAGES,
        )
        self._initialized = False

    @property
    def initialized(self) -> bool:
        """True between init() and close()."""
        return self._initialized

    def init(self) -> bool:
        """Restore any persisted session.

        Returns:
            True if a signed-in session was restored.
        """
        restored = self.credentials.restore()
        self._initialized = True
        logger.info(
            "Data context initialized",
            base_url=self.settings.base_url,
            session_restored=restored,
        )
        return restored

    def reset(self) -> None:
        """Drop every cached result and stored credential."""
        self.cache.reset()
        self.credentials.clear()
        logger.info("Data context reset")

    def query(self, accessor: Accessor, name: str | None = None) -> LiveQuery[Any]:
        """Create an observable query over a facade accessor."""
        return LiveQuery(accessor, messages=self.settings.ERROR_MESSAGES, name=name)

    async def close(self) -> None:
        """Cancel in-flight fetches and release the HTTP client and storage."""
        self.cache.cancel_all()
        await self.transport.close()
        self.credentials.close()
        self._initialized = False

    async def __aenter__(self) -> DataContext:
        self.init()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
