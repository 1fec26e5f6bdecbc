# tests/test_background.py
from __future__ import annotations

import threading
import time
from typing import Any, Callable

from argos.tasks import BackgroundTasks


def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_polling_task_runs_until_stopped() -> None:
    calls: list[int] = []
    tasks = BackgroundTasks()

    handle = tasks.start(lambda: calls.append(1), interval_ms=10, name="poller")

    assert _wait_for(lambda: len(calls) >= 3)
    assert tasks.is_running(handle)
    assert handle.name == "poller"

    assert tasks.stop(handle)
    count = len(calls)
    time.sleep(0.05)

    assert len(calls) == count
    assert not tasks.is_running(handle)
    assert tasks.handles() == []


def test_polling_task_with_argument_receives_none() -> None:
    seen: list[Any] = []
    tasks = BackgroundTasks()

    handle = tasks.start(lambda value: seen.append(value), interval_ms=10)
    assert _wait_for(lambda: len(seen) >= 1)
    tasks.stop(handle)

    assert set(seen) == {None}


def test_cycle_task_walks_items_in_order() -> None:
    seen: list[int] = []
    lock = threading.Lock()

    def record(item: int) -> None:
        with lock:
            seen.append(item)
        time.sleep(0.005)

    with BackgroundTasks() as tasks:
        tasks.start(record, cycle=[1, 2, 3])
        assert _wait_for(lambda: len(seen) >= 5)

    assert seen[:5] == [1, 2, 3, 1, 2]


def test_stop_twice_and_foreign_handles() -> None:
    first = BackgroundTasks()
    second = BackgroundTasks()

    handle = first.start(lambda: None, interval_ms=10)
    other = second.start(lambda: None, interval_ms=10)

    assert not second.stop(handle)
    assert second.is_running(other)
    assert first.stop(handle)
    assert not first.stop(handle)

    second.stop_all()
    assert second.handles() == []


def test_handles_are_listed_in_start_order() -> None:
    with BackgroundTasks() as tasks:
        a = tasks.start(lambda: None, interval_ms=50, name="a")
        b = tasks.start(lambda: None, interval_ms=50, name="b")

        assert tasks.handles() == [a, b]

    assert tasks.handles() == []


def test_failing_task_stops_its_loop() -> None:
    def broken() -> None:
        raise RuntimeError("nope")

    tasks = BackgroundTasks()
    handle = tasks.start(broken, interval_ms=10)

    assert _wait_for(lambda: not tasks.is_running(handle))
    assert tasks.stop(handle)


def test_finished_loops_drop_out_of_handles() -> None:
    def broken() -> None:
        raise RuntimeError("nope")

    tasks = BackgroundTasks()
    empty = tasks.start(lambda item: None, cycle=[])
    failed = tasks.start(broken, interval_ms=10)
    alive = tasks.start(lambda: None, interval_ms=10)

    assert _wait_for(lambda: not tasks.is_running(empty) and not tasks.is_running(failed))
    assert tasks.handles() == [alive]

    tasks.stop_all()
    assert tasks.handles() == []
    assert not tasks.stop(empty)
