from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .types import takes_argument

logger = logging.getLogger(__name__)

# Keys are unique across instances so a handle never matches a foreign job
_keys = itertools.count(1)


@dataclass(frozen=True)
class BackgroundHandle:
    key: int
    name: str


@dataclass
class _Entry:
    handle: BackgroundHandle
    thread: threading.Thread
    stop: threading.Event


class BackgroundTasks:
    def __init__(self, *, join_timeout_ms: int = 1_000):
        self.join_timeout_ms = join_timeout_ms
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}

    def __enter__(self) -> BackgroundTasks:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_all()

    def start(
        self,
        fn: Callable[..., Any],
        *,
        name: str | None = None,
        interval_ms: int = 1_000,
        cycle: Iterable[Any] | None = None,
    ) -> BackgroundHandle:
        key = next(_keys)
        handle = BackgroundHandle(key, name or f"background-{key}")
        stop = threading.Event()

        if cycle is None:
            target = self._poll_loop
            args: tuple[Any, ...] = (handle, fn, interval_ms / 1000, stop)
        else:
            target = self._cycle_loop
            args = (handle, fn, list(cycle), stop)

        thread = threading.Thread(target=target, args=args, daemon=True, name=handle.name)
        with self._lock:
            self._entries[key] = _Entry(handle, thread, stop)
        thread.start()
        logger.debug("Started background task %s", handle.name)
        return handle

    def stop(self, handle: BackgroundHandle) -> bool:
        with self._lock:
            entry = self._entries.pop(handle.key, None)
        if entry is None:
            return False

        entry.stop.set()
        entry.thread.join(timeout=self.join_timeout_ms / 1000)
        if entry.thread.is_alive():
            logger.warning("Background task %s did not stop in time, abandoning it", handle.name)
        return True

    def stop_all(self) -> None:
        with self._lock:
            handles = [entry.handle for entry in self._entries.values()]
        for handle in handles:
            self.stop(handle)

    def is_running(self, handle: BackgroundHandle) -> bool:
        with self._lock:
            entry = self._entries.get(handle.key)
        return entry is not None and entry.thread.is_alive()

    def handles(self) -> list[BackgroundHandle]:
        with self._lock:
            entries = [self._entries[key] for key in sorted(self._entries)]
        return [entry.handle for entry in entries if entry.thread.is_alive()]

    def _poll_loop(
        self, handle: BackgroundHandle, fn: Callable[..., Any], interval_s: float, stop: threading.Event
    ) -> None:
        with_arg = takes_argument(fn)
        while not stop.wait(interval_s):
            try:
                fn(None) if with_arg else fn()
            except Exception:
                logger.exception("Background task %s failed, stopping it", handle.name)
                return

    def _cycle_loop(
        self, handle: BackgroundHandle, fn: Callable[..., Any], items: list[Any], stop: threading.Event
    ) -> None:
        with_arg = takes_argument(fn)
        for item in itertools.cycle(items):
            if stop.is_set():
                return
            try:
                fn(item) if with_arg else fn()
            except Exception:
                logger.exception("Background task %s failed, stopping it", handle.name)
                return
