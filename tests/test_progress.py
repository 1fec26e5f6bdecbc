# tests/test_progress.py
from __future__ import annotations

from typing import Any

import pytest

from argos.tasks import progress as pg
from argos.tasks.progress import Progress, ProgressStatus, Step, define_steps


def _collect() -> tuple[list[Progress], Any]:
    events: list[Progress] = []
    return events, events.append


def test_create_defaults() -> None:
    p = pg.create("build")

    assert p.task_name == "build"
    assert p.status is ProgressStatus.PENDING
    assert p.progress == 0.0
    assert p.current_step == "Initializing..."
    assert p.start_time is not None
    assert p.metadata == {}


def test_create_assigns_increasing_ids_unless_given() -> None:
    first = pg.create("a")
    second = pg.create("b")

    assert second.task_id > first.task_id
    assert pg.create("c", task_id=7, index=2).task_id == 7
    assert pg.create("c", task_id=7, index=2).task_index == 2


def test_update_does_not_clamp() -> None:
    p = pg.update(pg.create("a"), ProgressStatus.RUNNING, 150, "overshoot")

    assert p.progress == 150.0
    assert p.current_step == "overshoot"


def test_update_rounds_and_merges_metadata() -> None:
    p = pg.update(pg.create("a"), ProgressStatus.RUNNING, 33.333, "x", metadata={"a": 1})
    p = pg.update(p, ProgressStatus.RUNNING, 50, "y", step_progress=12.34, metadata={"b": 2})

    assert p.progress == 50.0
    assert p.step_progress == 12.3
    assert p.metadata == {"a": 1, "b": 2}


def test_update_estimates_completion_only_between_bounds() -> None:
    p = pg.create("a")

    assert pg.update(p, ProgressStatus.RUNNING, 0, "x").estimated_completion is None
    assert pg.update(p, ProgressStatus.RUNNING, 100, "x").estimated_completion is None

    halfway = pg.update(p, ProgressStatus.RUNNING, 50, "x")
    assert halfway.estimated_completion is not None
    assert halfway.estimated_completion >= halfway.start_time


def test_update_never_mutates_the_input() -> None:
    p = pg.create("a")

    pg.start(p)

    assert p.status is ProgressStatus.PENDING


def test_lifecycle_helpers() -> None:
    p = pg.start(pg.create("a"))
    assert p.status is ProgressStatus.RUNNING
    assert p.current_step == "Starting..."

    p = pg.update_step(p, "compiling", 40)
    assert p.progress == 40.0
    assert p.step_progress == 40.0

    failed = pg.fail(p, "boom")
    assert failed.status is ProgressStatus.FAILED
    assert failed.progress == 40.0
    assert failed.current_step == "Failed: boom"

    done = pg.complete(p)
    assert done.status is ProgressStatus.COMPLETED
    assert done.progress == 100.0
    assert done.current_step == "Task completed successfully"


@pytest.mark.parametrize("finish", [pg.complete, lambda p: pg.fail(p, "x"), pg.cancel])
def test_terminal_states_are_sticky(finish: Any) -> None:
    terminal = finish(pg.start(pg.create("a")))

    assert pg.update_step(terminal, "again", 10) is terminal
    assert pg.start(terminal) is terminal


def test_format_for_display() -> None:
    p = pg.update_step(pg.start(pg.create("deploy", index=3)), "upload", 50)

    shown = pg.format_for_display(p)

    assert shown["description"] == "deploy"
    assert shown["index"] == 3
    assert shown["status"] == "running"
    assert shown["progress"] == 50.0
    assert shown["step"] == "upload"
    assert isinstance(shown["estimated_seconds_remaining"], int)
    assert shown["estimated_seconds_remaining"] >= 0
    assert pg.format_for_display(pg.create("x"))["estimated_seconds_remaining"] is None


def test_define_steps_reports_weighted_progress() -> None:
    events, callback = _collect()
    run = define_steps(
        "pipeline",
        [
            ("fetch", lambda ctx: {"fetched": True}, 10),
            ("build", lambda ctx: {"built": ctx["fetched"]}, 30),
            ("ship", lambda ctx: "shipped", 60),
        ],
    )

    context = run(callback)

    completed = [e.progress for e in events if e.current_step.endswith(" - Completed")]
    assert completed == [10.0, 40.0, 100.0]
    assert [e.current_step for e in events if not e.current_step.endswith(" - Completed")] == [
        "fetch",
        "build",
        "ship",
        "All steps completed",
    ]
    assert events[-1].status is ProgressStatus.COMPLETED
    assert events[-1].progress == 100.0
    assert context == {"fetched": True, "built": True, "last_step_result": "shipped"}


def test_define_steps_passes_a_copy_of_the_context() -> None:
    seen: list[dict[str, Any]] = []

    def first(ctx: dict[str, Any]) -> dict[str, Any]:
        ctx["leak"] = True
        return {"a": 1}

    def second(ctx: dict[str, Any]) -> None:
        seen.append(ctx)

    context = define_steps("t", [Step("one", first), Step("two", second)])()

    assert seen == [{"a": 1}]
    assert context == {"a": 1, "last_step_result": None}


def test_define_steps_with_zero_weights_runs_silently() -> None:
    events, callback = _collect()
    calls: list[str] = []

    run = define_steps(
        "t",
        [("a", lambda ctx: calls.append("a"), 0), ("b", lambda ctx: calls.append("b"), 0)],
    )
    run(callback)

    assert calls == ["a", "b"]
    assert events == []


def test_define_steps_clamps_progress() -> None:
    events, callback = _collect()

    define_steps("t", [("a", lambda ctx: None, -10), ("b", lambda ctx: None, 20)])(callback)

    completed = [e.progress for e in events if e.current_step.endswith(" - Completed")]
    assert completed == [0.0, 100.0]
    assert all(0.0 <= e.progress <= 100.0 for e in events)


def test_define_steps_stops_at_failing_step() -> None:
    events, callback = _collect()
    ran: list[str] = []

    def boom(ctx: dict[str, Any]) -> None:
        raise RuntimeError("disk full")

    run = define_steps(
        "t",
        [
            ("a", lambda ctx: {"a": 1}, 1),
            ("b", boom, 1),
            ("c", lambda ctx: ran.append("c"), 2),
        ],
    )
    context = run(callback)

    assert context == {"a": 1}
    assert ran == []
    failed, cancelled = events[-2:]
    assert failed.status is ProgressStatus.FAILED
    assert failed.current_step == "Failed: disk full"
    assert failed.progress == 25.0
    assert cancelled.status is ProgressStatus.CANCELLED
    assert cancelled.current_step == "Cancelled at step: b"
    assert cancelled.progress == 25.0


def test_define_steps_without_callback() -> None:
    assert define_steps("t", [("a", lambda ctx: {"x": 1}, 1)])() == {"x": 1}
