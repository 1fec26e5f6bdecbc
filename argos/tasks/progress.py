from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

_task_ids = itertools.count(1)

LAST_STEP_RESULT = "last_step_result"


class ProgressStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.FAILED, ProgressStatus.CANCELLED)


def now_ms() -> int:
    return int(time.monotonic() * 1000)


def next_task_id() -> int:
    return next(_task_ids)


@dataclass(frozen=True)
class Progress:
    task_name: str
    task_id: int | None = None
    task_index: int | None = None
    status: ProgressStatus = ProgressStatus.PENDING
    progress: float = 0.0
    current_step: str = "Initializing..."
    step_progress: float = 0.0
    start_time: int | None = None
    duration: int = 0
    estimated_completion: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[Progress], Any]


def create(
    task_name: str, *, task_id: int | None = None, index: int | None = None
) -> Progress:
    return Progress(
        task_name=task_name,
        task_id=task_id if task_id is not None else next_task_id(),
        task_index=index,
        start_time=now_ms(),
    )


def update(
    progress: Progress,
    status: ProgressStatus,
    percentage: float,
    step_description: str,
    *,
    step_progress: float | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Progress:
    if progress.status.is_terminal and status is not progress.status:
        logger.debug(
            "Ignoring %s -> %s for task %s", progress.status.value, status.value, progress.task_name
        )
        return progress

    now = now_ms()
    start_time = progress.start_time if progress.start_time is not None else now
    duration = now - start_time

    if 0 < percentage < 100:
        total_estimated = duration / (percentage / 100)
        estimated_completion = now + round(total_estimated - duration)
    else:
        estimated_completion = progress.estimated_completion

    if step_progress is None:
        step_progress = progress.step_progress

    return replace(
        progress,
        status=status,
        progress=round(float(percentage), 1),
        current_step=step_description,
        step_progress=round(float(step_progress), 1),
        start_time=start_time,
        duration=duration,
        estimated_completion=estimated_completion,
        metadata={**progress.metadata, **(metadata or {})},
    )


def start(progress: Progress, initial_step: str = "Starting...") -> Progress:
    return update(progress, ProgressStatus.RUNNING, 0.0, initial_step)


def update_step(
    progress: Progress,
    step_description: str,
    percentage: float,
    *,
    step_progress: float | None = None,
) -> Progress:
    if step_progress is None:
        step_progress = percentage
    return update(
        progress, ProgressStatus.RUNNING, percentage, step_description, step_progress=step_progress
    )


def complete(progress: Progress, final_message: str = "Task completed successfully") -> Progress:
    return update(progress, ProgressStatus.COMPLETED, 100.0, final_message)


def fail(progress: Progress, error_message: str) -> Progress:
    return update(progress, ProgressStatus.FAILED, progress.progress, f"Failed: {error_message}")


def cancel(progress: Progress, reason: str = "Cancelled") -> Progress:
    return update(progress, ProgressStatus.CANCELLED, progress.progress, reason)


def format_for_display(progress: Progress) -> dict[str, Any]:
    return {
        "id": progress.task_id,
        "index": progress.task_index,
        "description": progress.task_name,
        "status": progress.status.value,
        "progress": progress.progress,
        "step": progress.current_step,
        "step_progress": progress.step_progress,
        "duration": progress.duration,
        "estimated_seconds_remaining": _remaining_seconds(progress),
        "metadata": dict(progress.metadata),
    }


def _remaining_seconds(progress: Progress) -> int | None:
    if not 0 < progress.progress < 100 or progress.estimated_completion is None:
        return None
    return max(0, round((progress.estimated_completion - now_ms()) / 1000))


@dataclass(frozen=True)
class Step:
    label: str
    fn: Callable[[dict[str, Any]], Any]
    weight: float = 1.0


def _percent(done: float, total: float) -> float:
    return min(100.0, max(0.0, round(done / total * 100, 1)))


def _merge(context: dict[str, Any], result: Any) -> dict[str, Any]:
    if isinstance(result, Mapping):
        return {**context, **result}
    return {**context, LAST_STEP_RESULT: result}


def define_steps(
    task_name: str, steps: Sequence[Step | tuple[str, Callable[[dict[str, Any]], Any], float]]
) -> Callable[[ProgressCallback | None], dict[str, Any]]:
    """Build a task function that runs weighted steps in order.

    Mapping results are merged into the context, anything else lands under
    ``"last_step_result"``. A failing step stops the run and returns the context
    so far. Nothing is reported when the weights sum to zero.
    """
    normalized = [step if isinstance(step, Step) else Step(*step) for step in steps]
    total = sum(step.weight for step in normalized)

    def run(callback: ProgressCallback | None = None) -> dict[str, Any]:
        def notify(progress: Progress) -> None:
            if callback is not None and total > 0:
                callback(progress)

        context: dict[str, Any] = {}
        progress = create(task_name)
        done = 0.0

        for step in normalized:
            percentage = _percent(done, total) if total > 0 else 0.0
            progress = update(progress, ProgressStatus.RUNNING, percentage, step.label)
            notify(progress)

            try:
                result = step.fn(dict(context))
            except Exception as exc:
                logger.warning("Step %r of %s failed: %s", step.label, task_name, exc)
                notify(fail(progress, str(exc)))
                notify(cancel(progress, f"Cancelled at step: {step.label}"))
                return context

            context = _merge(context, result)
            done += step.weight
            percentage = _percent(done, total) if total > 0 else 0.0
            progress = update_step(progress, f"{step.label} - Completed", percentage)
            notify(progress)

        notify(complete(progress, "All steps completed"))
        return context

    return run
