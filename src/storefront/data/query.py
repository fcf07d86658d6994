"""
Observable query state for UI collaborators.

A LiveQuery wraps one facade accessor and exposes `{data, loading, error}`
snapshots to subscribers. Every LiveQuery is its own call site, so loading it
again before the previous load settles supersedes that load: the older
result is never applied over the newer one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, TypeVar

from storefront.config import DEFAULT_ERROR_MESSAGES
from storefront.exceptions import FetchCancelledError, describe_error
from storefront.logging import get_logger
from storefront.types import generate_id

logger = get_logger(__name__)

T = TypeVar("T")

# accessor(*args, force_refresh=..., call_site=..., **kwargs)
Accessor = Callable[..., Awaitable[Any]]
Listener = Callable[["QueryState[Any]"], Any]


@dataclass(frozen=True)
class QueryState(Generic[T]):
    """Snapshot of one query."""

    data: T | None = None
    loading: bool = False
    error: str | None = None


class LiveQuery(Generic[T]):
    """Subscribable state for one accessor.

    Usage:
        query = LiveQuery(service.get_products, messages=settings.ERROR_MESSAGES)
        unsubscribe = query.subscribe(render)
        await query.load({"page": 1})
        await query.refetch()
    """

    def __init__(
        self,
        accessor: Accessor,
        messages: dict[str, str] | None = None,
        name: str | None = None,
    ) -> None:
        """Initialize the query.

        Args:
            accessor: Facade accessor accepting force_refresh and call_site.
            messages: User-facing error messages per kind.
            name: Label used as the call-site prefix.
        """
        self._accessor = accessor
        self._messages = messages or DEFAULT_ERROR_MESSAGES
        self.call_site = generate_id(name or getattr(accessor, "__name__", "query"))
        self._state: QueryState[T] = QueryState()
        self._listeners: list[Listener] = []
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}
        self._generation = 0

    @property
    def state(self) -> QueryState[T]:
        """Current snapshot."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new snapshot.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error("Query listener failed", call_site=self.call_site, error=str(e))

    async def load(self, *args: Any, force_refresh: bool = False, **kwargs: Any) -> QueryState[T]:
        """Load with new arguments, superseding any unsettled load.

        Returns:
            The snapshot after this load (unchanged if it was superseded).
        """
        self._args = args
        self._kwargs = kwargs
        self._generation += 1
        generation = self._generation

        self._set_state(loading=True, error=None)
        try:
            data = await self._accessor(
                *args,
                force_refresh=force_refresh,
                call_site=self.call_site,
                **kwargs,
            )
        except FetchCancelledError:
            # A newer load owns the state now
            return self._state
        except Exception as e:
            if generation == self._generation:
                self._set_state(loading=False, error=describe_error(e, self._messages))
            return self._state

        if generation == self._generation:
            self._set_state(data=data, loading=False, error=None)
        return self._state

    async def refetch(self) -> QueryState[T]:
        """Reload the last arguments, bypassing the cache."""
        return await self.load(*self._args, force_refresh=True, **self._kwargs)
