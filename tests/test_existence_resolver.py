"""
Tests for compendium/services/existence_resolver.py

Verifies that:
1. Requests inside the quiescence window collapse into one lookup
2. A slow response for an older id never overwrites a newer result
3. Lookup failures are reported as "does not exist"
4. Invalid ids never reach the store
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import pytest

from compendium.services.existence_resolver import ExistenceResolver
from tests.helpers import lookup_error


async def _until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_rapid_requests_issue_one_lookup(self, store):
        store.seed("1.00003")
        resolver = ExistenceResolver(store, debounce_seconds=0.05)

        resolver.request("1.00001")
        resolver.request("1.00002")
        resolver.request("1.00003")
        await resolver.wait_idle()

        assert store.lookups == ["1.00003"]
        assert resolver.state is not None
        assert resolver.state.law_id == "1.00003"
        assert resolver.state.exists is True

    @pytest.mark.asyncio
    async def test_separate_windows_each_look_up(self, store):
        resolver = ExistenceResolver(store, debounce_seconds=0.01)

        resolver.request("1.00001")
        await resolver.wait_idle()
        resolver.request("1.00002")
        await resolver.wait_idle()

        assert store.lookups == ["1.00001", "1.00002"]

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_lookup(self, store):
        resolver = ExistenceResolver(store, debounce_seconds=0.05)

        resolver.request("1.00001")
        resolver.cancel()
        await resolver.wait_idle()

        assert store.lookups == []
        assert resolver.state is None


class TestStaleResponses:
    @pytest.mark.asyncio
    async def test_late_response_for_older_id_is_discarded(self, store):
        store.seed("1.00002")
        gate = asyncio.Event()
        store.lookup_gates["1.00001"] = gate
        applied = []
        resolver = ExistenceResolver(store, debounce_seconds=0, on_result=applied.append)

        resolver.request("1.00001")
        await _until(lambda: "1.00001" in store.lookups)

        resolver.request("1.00002")
        await _until(lambda: resolver.state is not None)
        assert resolver.state.law_id == "1.00002"

        # Now let the older lookup finish.
        gate.set()
        await resolver.wait_idle()

        assert resolver.state.law_id == "1.00002"
        assert resolver.state.exists is True
        assert [result.law_id for result in applied] == ["1.00002"]

    @pytest.mark.asyncio
    async def test_generation_increments_per_request(self, store):
        resolver = ExistenceResolver(store, debounce_seconds=0)
        resolver.request("1.00001")
        resolver.request("1.00002")
        assert resolver.generation == 2
        await resolver.wait_idle()


class TestFailuresAndInvalidInput:
    @pytest.mark.asyncio
    async def test_lookup_failure_reads_as_missing(self, store, caplog):
        store.seed("1.00001")
        store.lookup_error = lookup_error()
        resolver = ExistenceResolver(store, debounce_seconds=0)

        with caplog.at_level(logging.WARNING):
            resolver.request("1.00001")
            await resolver.wait_idle()

        assert resolver.state is not None
        assert resolver.state.exists is False
        assert "treating as not found" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_id_skips_store_and_cancels_pending(self, store):
        resolver = ExistenceResolver(store, debounce_seconds=0.05)

        resolver.request("1.00001")
        resolver.request("1.0")
        await resolver.wait_idle()

        assert store.lookups == []
        assert resolver.state is not None
        assert resolver.state.law_id == "1.0"
        assert resolver.state.exists is False

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_state(self, store, caplog):
        def explode(result):
            raise RuntimeError("ui gone")

        resolver = ExistenceResolver(store, debounce_seconds=0, on_result=explode)
        with caplog.at_level(logging.ERROR):
            resolver.request("1.00001")
            await resolver.wait_idle()

        assert resolver.state is not None
        assert "callback failed" in caplog.text


class TestResolve:
    @pytest.mark.asyncio
    async def test_found_record_carries_relationships(self, store):
        store.seed("1.00001", associated_compendiums=["c1", "c2"])
        result = await ExistenceResolver(store).resolve("1.00001")

        assert result.exists is True
        assert [a.id for a in result.relationships] == ["c1-1.00001", "c2-1.00001"]

    @pytest.mark.asyncio
    async def test_absent_record(self, store):
        result = await ExistenceResolver(store).resolve("1.00009")
        assert result.exists is False
        assert result.relationships == []
