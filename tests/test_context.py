from __future__ import annotations

import asyncio
import inspect

import pytest

from valkys.ui_tui.context import AppState, CommandHistory, KeySnapshot, ViewKind


def test_view_labels() -> None:
    assert ViewKind.CONSOLE.label == "CLI"
    assert ViewKind.KEYS.label == "Keys"


def test_placeholder_snapshots() -> None:
    missing = KeySnapshot.placeholder("gone", missing=True)
    failed = KeySnapshot.placeholder("broken")
    assert missing.is_placeholder and missing.ttl_seconds == -2
    assert failed.is_placeholder and failed.ttl_seconds is None and failed.size_bytes is None


def test_history_navigation_is_clamped() -> None:
    history = CommandHistory()
    assert history.previous() is None
    for command in ("PING", "GET a", "SET a 1"):
        history.append(command)
    assert history.previous() == "SET a 1"
    assert history.previous() == "GET a"
    assert history.previous() == "PING"
    assert history.previous() == "PING"
    assert history.next() == "GET a"
    assert history.next() == "SET a 1"
    assert history.next() == ""
    assert history.next() == ""
    history.clear()
    assert len(history) == 0


@pytest.mark.asyncio
async def test_replace_cancels_previous_task() -> None:
    state = AppState()
    events: list[str] = []

    async def job(label: str, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            events.append(f"done:{label}")
        except asyncio.CancelledError:
            events.append(f"cancelled:{label}")
            raise

    first = state.spawn(job("first", 1.0), name="refresh:keys", replace=True)
    await asyncio.sleep(0)
    second = state.spawn(job("second", 0.0), name="refresh:keys", replace=True)
    assert first is not None and second is not None
    await second
    assert events == ["cancelled:first", "done:second"]
    assert state.task("refresh:keys") is None


@pytest.mark.asyncio
async def test_task_cancelled_before_start_closes_its_coroutine() -> None:
    state = AppState()

    async def job() -> None:
        await asyncio.sleep(1)

    coro = job()
    task = state.spawn(coro, name="refresh:info", replace=True)
    assert task is not None
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED
    assert state.task("refresh:info") is None


@pytest.mark.asyncio
async def test_stop_task_cancels_and_forgets_named_task() -> None:
    state = AppState()
    started = asyncio.Event()

    async def job() -> None:
        started.set()
        await asyncio.sleep(10)

    task = state.spawn(job(), name="refresh:monitor", replace=True)
    await started.wait()
    await state.stop_task("refresh:monitor")
    assert task is not None and task.cancelled()
    assert state.task("refresh:monitor") is None
    await state.stop_task("refresh:monitor")


@pytest.mark.asyncio
async def test_failing_task_is_logged_not_raised() -> None:
    state = AppState()

    async def broken() -> None:
        raise RuntimeError("boom")

    task = state.spawn(broken(), name="broken")
    assert task is not None
    assert await task is None
    assert state.live_tasks() == []


@pytest.mark.asyncio
async def test_spawn_after_shutdown_is_refused() -> None:
    state = AppState()
    await state.shutdown(0.1)

    async def job() -> None:
        return None

    assert state.spawn(job(), name="late") is None


@pytest.mark.asyncio
async def test_shutdown_abandons_tasks_that_ignore_cancellation() -> None:
    state = AppState()

    async def stubborn() -> None:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            await asyncio.sleep(0.3)

    async def polite() -> None:
        await asyncio.sleep(10)

    stuck = state.spawn(stubborn(), name="stubborn")
    state.spawn(polite(), name="polite", replace=True)
    await asyncio.sleep(0)

    abandoned = await state.shutdown(0.05)

    assert abandoned == ["stubborn"]
    assert not state.running
    assert stuck is not None
    await stuck
