from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Hashable, Literal, Sequence

from argos.command.executor import CommandExecutor, elapsed_ms, halt
from argos.config import Settings
from argos.log import LogSink

from .progress import Progress, ProgressCallback, create, next_task_id
from .types import (
    BatchResult,
    CallableSpec,
    CommandSpec,
    TaskResult,
    TaskSpec,
    normalize_spec,
    takes_argument,
)

logger = logging.getLogger(__name__)

_SENTINEL = object()

TaskList = Sequence[tuple[Hashable, Any]]


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class TaskOrchestrator:
    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        settings: Settings | None = None,
        sink: LogSink | None = None,
    ):
        self.executor = executor or CommandExecutor(settings, sink)
        self.settings = self.executor.settings
        self.sink = self.executor.sink

    def run_parallel(
        self,
        tasks: TaskList,
        *,
        timeout_ms: int | None = None,
        max_concurrency: int | None = None,
        halt_on_failure: bool = False,
        strict_specs: bool = False,
    ) -> BatchResult:
        timeout_ms = timeout_ms or self.settings.task_timeout_ms
        max_concurrency = max_concurrency or self.settings.max_concurrency
        items = [(name, normalize_spec(spec, strict=strict_specs)) for name, spec in tasks]

        started = time.monotonic()
        self.sink.log(
            "info",
            "Starting parallel execution",
            {"task_count": len(items), "max_concurrency": max_concurrency, "timeout": timeout_ms},
        )

        results = self._dispatch(items, timeout_ms, max_concurrency)
        batch = BatchResult.collect(results, elapsed_ms(started))
        self._log_batch(batch)

        if halt_on_failure and not batch.all_success:
            self.sink.log("error", "Halting due to task failure")
            halt(1)

        return batch

    def run_single(
        self, task_name: Hashable, task_spec: Any, *, timeout_ms: int | None = None
    ) -> TaskResult:
        timeout_ms = timeout_ms or self.settings.single_task_timeout_ms
        started = time.monotonic()
        self.sink.log("debug", "Starting single task", {"task_name": task_name})

        result = self._run_guarded(task_name, normalize_spec(task_spec), timeout_ms)
        result = result.with_duration(elapsed_ms(started))
        self.sink.log_task(result)
        return result

    def run_with_progress(
        self,
        tasks: TaskList,
        callback: ProgressCallback | None = None,
        *,
        timeout_ms: int | None = None,
        max_concurrency: int | None = None,
    ) -> tuple[Literal["ok"], list[TaskResult]]:
        """Like run_parallel, but callables taking an argument get a progress reporter."""
        timeout_ms = timeout_ms or self.settings.task_timeout_ms
        max_concurrency = max_concurrency or self.settings.max_concurrency
        items = [(name, normalize_spec(spec)) for name, spec in tasks]
        task_ids = [next_task_id() for _ in items]

        events: queue.Queue[Progress | object] = queue.Queue()
        for index, (name, _) in enumerate(items):
            events.put(create(str(name), task_id=task_ids[index], index=index))

        def reporter(index: int) -> ProgressCallback:
            def report(progress: Progress) -> None:
                if isinstance(progress, Progress):
                    progress = replace(progress, task_index=index, task_id=task_ids[index])
                events.put(progress)

            return report

        reporters = [reporter(index) for index in range(len(items))]
        result_holder: list[list[TaskResult]] = []
        error_holder: list[BaseException] = []

        def _run() -> None:
            try:
                result_holder.append(
                    self._dispatch(items, timeout_ms, max_concurrency, reporters)
                )
            except BaseException as exc:
                error_holder.append(exc)
            finally:
                events.put(_SENTINEL)

        worker_thread = threading.Thread(target=_run, daemon=True, name="argos-batch")
        worker_thread.start()

        while True:
            event = events.get()
            if event is _SENTINEL:
                break
            if callback is None:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("Progress callback failed")

        worker_thread.join()

        if error_holder:
            raise error_holder[0]

        return "ok", result_holder[0]

    def _dispatch(
        self,
        items: list[tuple[Hashable, TaskSpec]],
        timeout_ms: int,
        max_concurrency: int,
        reporters: list[ProgressCallback] | None = None,
    ) -> list[TaskResult]:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be > 0, got {max_concurrency}")
        if not items:
            return []

        def slot(index: int) -> TaskResult:
            name, spec = items[index]
            report = reporters[index] if reporters is not None else None
            result = self._run_guarded(name, spec, timeout_ms, report)
            self.sink.log_task(result)
            return result

        with ThreadPoolExecutor(
            max_workers=max_concurrency, thread_name_prefix="argos-slot"
        ) as pool:
            return list(pool.map(slot, range(len(items))))

    def _run_guarded(
        self,
        name: Hashable,
        spec: TaskSpec,
        timeout_ms: int,
        report: ProgressCallback | None = None,
    ) -> TaskResult:
        started = time.monotonic()
        future: Future[TaskResult] = Future()

        def work() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._execute(name, spec, timeout_ms, report))
            except BaseException as exc:
                future.set_exception(exc)

        thread = threading.Thread(target=work, daemon=True, name=f"argos-task-{name}")
        thread.start()

        try:
            return future.result(timeout=timeout_ms / 1000)
        except TimeoutError:
            logger.warning("Task %s timed out after %dms, abandoning it", name, timeout_ms)
            return TaskResult.failure(
                name, None, elapsed_ms(started), f"Task timed out after {timeout_ms}ms"
            )
        except BaseException as exc:
            return TaskResult.failure(name, None, elapsed_ms(started), f"Task failed: {exc!r}")

    def _execute(
        self,
        name: Hashable,
        spec: TaskSpec,
        timeout_ms: int,
        report: ProgressCallback | None,
    ) -> TaskResult:
        started = time.monotonic()
        self.sink.log("debug", "Executing task", {"task_name": name})

        try:
            match spec:
                case CommandSpec(command=command):
                    command_result = self.executor.run(command, timeout_ms=timeout_ms)
                    if not command_result.success:
                        detail = command_result.error or f"exit code {command_result.exit_code}"
                        return TaskResult.failure(
                            name,
                            command_result,
                            elapsed_ms(started),
                            f"Command failed ({detail}): {command_result.output.strip()}",
                        )
                    value = command_result.output
                case CallableSpec(fn=fn):
                    if report is not None and takes_argument(fn):
                        value = fn(report)
                    else:
                        value = fn()
                case _:
                    raise AssertionError("Unreachable")
        except SystemExit as exc:
            return TaskResult.failure(name, None, elapsed_ms(started), f"Task exited: {exc.code!r}")
        except Exception as exc:
            return TaskResult.failure(name, None, elapsed_ms(started), _describe(exc))

        return TaskResult.ok(name, value, elapsed_ms(started))

    def _log_batch(self, batch: BatchResult) -> None:
        successful = sum(1 for r in batch.results if r.success)
        metadata: dict[str, Any] = {
            "total_tasks": len(batch.results),
            "successful_tasks": successful,
            "failed_tasks": len(batch.results) - successful,
            "total_duration": batch.total_duration,
            "all_success": batch.all_success,
        }

        if batch.all_success:
            self.sink.log("success", "All parallel tasks completed successfully", metadata)
        else:
            metadata["failed_task_names"] = [r.task_name for r in batch.failed()]
            self.sink.log("error", "Some parallel tasks failed", metadata)
