from __future__ import annotations

import asyncio

import pytest
from conftest import FakeStore, ScriptedScanStore

from valkys.store.gateway import StoreGateway
from valkys.ui_tui.loader import IncrementalLoader, LoadProgress
from valkys.ui_tui.mutations import MutationQueue
from valkys.utils.errors import KeyNotFoundError, StoreCommandError, StoreTransportError


async def _run(store: FakeStore, **kwargs: int) -> tuple[LoadProgress, list[LoadProgress]]:
    gateway = StoreGateway(store)
    queue = MutationQueue(asyncio.get_running_loop())
    updates: list[LoadProgress] = []
    loader = IncrementalLoader(gateway, queue, **kwargs)
    try:
        result = await loader.run(updates.append)
        await queue.flush()
    finally:
        gateway.close()
    return result, updates


@pytest.mark.asyncio
async def test_empty_keyspace_yields_single_final_update() -> None:
    result, updates = await _run(FakeStore())
    assert result.done and result.snapshots == () and not result.partial
    assert updates == [result]


@pytest.mark.asyncio
async def test_small_keyspace_is_sorted(fake_store: FakeStore) -> None:
    result, updates = await _run(fake_store)
    assert [s.name for s in result.snapshots] == ["alpha", "beta", "gamma"]
    assert [s.kind for s in result.snapshots] == ["string", "list", "hash"]
    assert len(updates) == 1


@pytest.mark.asyncio
async def test_exactly_one_batch_emits_progress_then_final() -> None:
    store = FakeStore({f"key:{index:03d}": "v" for index in range(50)})
    result, updates = await _run(store, batch_size=50, scan_count=20)
    assert [update.done for update in updates] == [False, True]
    assert updates[0].count == 50
    assert updates[0].snapshots == result.snapshots
    assert not result.partial


@pytest.mark.asyncio
async def test_names_repeated_by_the_cursor_are_loaded_once() -> None:
    store = ScriptedScanStore([["a", "b"], ["b", "c"]])
    result, _ = await _run(store)
    assert [s.name for s in result.snapshots] == ["a", "b", "c"]
    assert store.count("describe_key") == 3


@pytest.mark.asyncio
async def test_cap_counts_unique_names() -> None:
    store = ScriptedScanStore([["a", "b"], ["a", "b", "c"]])
    result, _ = await _run(store, max_keys=3)
    assert result.count == 3
    assert not result.partial


@pytest.mark.asyncio
async def test_keyspace_over_cap_is_partial() -> None:
    store = FakeStore({f"key:{index:03d}": "v" for index in range(25)})
    result, _ = await _run(store, max_keys=10, scan_count=7)
    assert result.partial
    assert result.count == 10
    assert store.count("describe_key") == 10


@pytest.mark.asyncio
async def test_keyspace_equal_to_cap_is_complete() -> None:
    store = FakeStore({f"key:{index}": "v" for index in range(10)})
    result, _ = await _run(store, max_keys=10)
    assert not result.partial
    assert result.count == 10


@pytest.mark.asyncio
async def test_scan_failure_reports_error(fake_store: FakeStore) -> None:
    fake_store.fail["scan"] = StoreTransportError("connection refused")
    result, updates = await _run(fake_store)
    assert result.done
    assert result.error == "connection refused"
    assert result.snapshots == ()
    assert updates == [result]


@pytest.mark.asyncio
async def test_describe_failures_become_placeholders(fake_store: FakeStore) -> None:
    fake_store.failing_keys["beta"] = StoreCommandError("WRONGTYPE")
    fake_store.failing_keys["gamma"] = KeyNotFoundError("gamma")
    result, _ = await _run(fake_store)
    by_name = {snapshot.name: snapshot for snapshot in result.snapshots}
    assert by_name["alpha"].kind == "string"
    assert by_name["beta"].is_placeholder and by_name["beta"].ttl_seconds is None
    assert by_name["gamma"].is_placeholder and by_name["gamma"].ttl_seconds == -2


@pytest.mark.asyncio
async def test_each_run_gets_a_new_generation(fake_store: FakeStore) -> None:
    gateway = StoreGateway(fake_store)
    queue = MutationQueue(asyncio.get_running_loop())
    loader = IncrementalLoader(gateway, queue)
    try:
        first = await loader.run(lambda _: None)
        second = await loader.run(lambda _: None)
    finally:
        gateway.close()
    assert second.generation == first.generation + 1 == loader.generation
