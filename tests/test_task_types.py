# tests/test_task_types.py
from __future__ import annotations

from typing import Any

import pytest

from argos.tasks.types import (
    BatchResult,
    CallableSpec,
    CommandSpec,
    TaskResult,
    TaskSpecError,
    normalize_spec,
    takes_argument,
)


def _noop() -> str:
    return "noop"


def test_string_is_a_command() -> None:
    assert normalize_spec("echo hi") == CommandSpec("echo hi")


def test_tagged_tuples() -> None:
    assert normalize_spec(("command", "ls")) == CommandSpec("ls")
    assert normalize_spec(("callable", _noop)) == CallableSpec(_noop)
    assert normalize_spec(("function", _noop)) == CallableSpec(_noop)


def test_string_list_is_an_argument_vector() -> None:
    assert normalize_spec(["echo", "a b"]) == CommandSpec(("echo", "a b"))
    assert normalize_spec(["command", "ls"]) == CommandSpec(("command", "ls"))


def test_string_tuple_is_an_argument_vector() -> None:
    assert normalize_spec(("echo", "hi")) == CommandSpec(("echo", "hi"))
    assert normalize_spec(("true",)) == CommandSpec(("true",))


def test_callable_and_existing_specs_pass_through() -> None:
    spec = CommandSpec("true")
    assert normalize_spec(spec) is spec
    assert normalize_spec(_noop) == CallableSpec(_noop)


@pytest.mark.parametrize("spec", [42, None, [], ["echo", 1], ("command", 5), {"cmd": "x"}])
def test_unknown_spec_falls_back_to_diagnostic_callable(spec: Any) -> None:
    normalized = normalize_spec(spec)

    assert isinstance(normalized, CallableSpec)
    assert normalized.fn() == f"Unknown task spec: {spec!r}"


@pytest.mark.parametrize("spec", [42, None, [], ("command", 5)])
def test_unknown_spec_raises_when_strict(spec: Any) -> None:
    with pytest.raises(TaskSpecError):
        normalize_spec(spec, strict=True)


def test_takes_argument() -> None:
    def one(progress: Any) -> None: ...

    def star(*args: Any) -> None: ...

    def keyword_only(*, progress: Any = None) -> None: ...

    assert takes_argument(one)
    assert takes_argument(star)
    assert takes_argument(lambda x: x)
    assert not takes_argument(_noop)
    assert not takes_argument(keyword_only)


def test_successful_task_result_cannot_carry_error() -> None:
    with pytest.raises(ValueError):
        TaskResult("a", 1, 0, True, "boom")


def test_error_message_from_exception() -> None:
    result = TaskResult.from_exception("a", ValueError("bad value"), 5)

    assert not result.success
    assert result.error_message == "bad value"
    assert TaskResult.from_exception("b", KeyError(), 0).error_message == "KeyError"
    assert TaskResult.ok("c", 1, 0).error_message is None


def test_with_duration_returns_a_copy() -> None:
    result = TaskResult.ok("a", "x", 1)

    updated = result.with_duration(99)

    assert updated.duration == 99
    assert result.duration == 1


def test_batch_result_collect() -> None:
    results = [TaskResult.ok("a", 1, 1), TaskResult.failure("b", None, 2, "boom")]

    batch = BatchResult.collect(results, 10)

    assert batch.results == tuple(results)
    assert not batch.all_success
    assert batch.total_duration == 10
    assert [r.task_name for r in batch.failed()] == ["b"]


def test_empty_batch_is_successful() -> None:
    assert BatchResult.collect([], 0).all_success
