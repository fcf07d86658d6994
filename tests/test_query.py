"""
Tests for observable query state.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from storefront.cache.ttl_cache import ResultCache
from storefront.data.query import LiveQuery, QueryState
from storefront.exceptions import HttpError, NetworkError


class FakeAccessor:
    """Accessor backed by a ResultCache, with controllable per-argument gates."""

    __name__ = "get_products"

    def __init__(self) -> None:
        self.cache = ResultCache()
        self.gates: dict[str, asyncio.Event] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, bool]] = []

    async def __call__(
        self,
        query: str,
        *,
        force_refresh: bool = False,
        call_site: str | None = None,
    ) -> Any:
        self.calls.append((query, force_refresh))

        async def fetch() -> Any:
            if query in self.gates:
                await self.gates[query].wait()
            if query in self.errors:
                raise self.errors[query]
            return [f"result for {query}"]

        return await self.cache.get(
            f"search_{{\"q\": \"{query}\"}}",
            fetch,
            force_refresh=force_refresh,
            call_site=call_site,
        )


class TestLiveQuery:
    """State transitions and subscriptions."""

    @pytest.mark.asyncio
    async def test_load_sets_data_and_notifies(self) -> None:
        """Test loading → loaded transitions reach subscribers."""
        accessor = FakeAccessor()
        query: LiveQuery[list[str]] = LiveQuery(accessor)
        snapshots: list[QueryState[Any]] = []
        query.subscribe(snapshots.append)

        state = await query.load("desk")

        assert state == QueryState(data=["result for desk"], loading=False, error=None)
        assert snapshots[0].loading is True
        assert snapshots[-1] == state

    @pytest.mark.asyncio
    async def test_error_is_mapped_to_user_message(self) -> None:
        """Test that failures surface as a message string."""
        accessor = FakeAccessor()
        accessor.errors["broken"] = HttpError(500, {"message": "Database unavailable"})
        query: LiveQuery[Any] = LiveQuery(accessor)

        state = await query.load("broken")

        assert state.loading is False
        assert state.error == "Database unavailable"
        assert state.data is None

    @pytest.mark.asyncio
    async def test_custom_messages_are_used(self) -> None:
        """Test that the configured message table drives generic errors."""
        accessor = FakeAccessor()
        accessor.errors["offline"] = NetworkError("connection refused")
        query: LiveQuery[Any] = LiveQuery(accessor, messages={"network": "You are offline"})

        state = await query.load("offline")

        assert state.error == "You are offline"

    @pytest.mark.asyncio
    async def test_newer_load_wins_over_older(self) -> None:
        """Test that a superseded load never overwrites the newer result."""
        accessor = FakeAccessor()
        accessor.gates["old"] = asyncio.Event()
        query: LiveQuery[Any] = LiveQuery(accessor)

        old = asyncio.create_task(query.load("old"))
        await asyncio.sleep(0)
        new_state = await query.load("new")
        accessor.gates["old"].set()
        await old

        assert new_state.data == ["result for new"]
        assert query.state.data == ["result for new"]
        assert query.state.error is None

    @pytest.mark.asyncio
    async def test_refetch_forces_refresh_with_last_arguments(self) -> None:
        """Test that refetch repeats the last load bypassing the cache."""
        accessor = FakeAccessor()
        query: LiveQuery[Any] = LiveQuery(accessor)

        await query.load("chair")
        await query.refetch()

        assert accessor.calls == [("chair", False), ("chair", True)]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self) -> None:
        """Test that an unsubscribed listener is not called again."""
        accessor = FakeAccessor()
        query: LiveQuery[Any] = LiveQuery(accessor)
        seen: list[QueryState[Any]] = []
        unsubscribe = query.subscribe(seen.append)

        await query.load("a")
        count = len(seen)
        unsubscribe()
        await query.load("b")

        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_load(self) -> None:
        """Test that listener errors are contained."""
        accessor = FakeAccessor()
        query: LiveQuery[Any] = LiveQuery(accessor)

        def broken(state: QueryState[Any]) -> None:
            raise RuntimeError("render failed")

        query.subscribe(broken)
        state = await query.load("lamp")

        assert state.data == ["result for lamp"]

    def test_each_query_is_its_own_call_site(self) -> None:
        """Test that call sites are unique per query and named after the accessor."""
        accessor = FakeAccessor()
        first: LiveQuery[Any] = LiveQuery(accessor)
        second: LiveQuery[Any] = LiveQuery(accessor)

        assert first.call_site != second.call_site
        assert first.call_site.startswith("get_products_")
