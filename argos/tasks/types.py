from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Hashable, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskResult:
    task_name: Hashable
    result: Any
    duration: int
    success: bool
    error: str | BaseException | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("a successful TaskResult cannot carry an error")

    @classmethod
    def ok(cls, task_name: Hashable, result: Any, duration: int) -> TaskResult:
        return cls(task_name, result, duration, True)

    @classmethod
    def failure(
        cls,
        task_name: Hashable,
        result: Any,
        duration: int,
        error: str | BaseException,
    ) -> TaskResult:
        return cls(task_name, result, duration, False, error)

    @classmethod
    def from_exception(
        cls, task_name: Hashable, exc: BaseException, duration: int
    ) -> TaskResult:
        return cls(task_name, None, duration, False, exc)

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, BaseException):
            return str(self.error) or type(self.error).__name__
        return self.error

    def with_duration(self, duration: int) -> TaskResult:
        return replace(self, duration=duration)


@dataclass(frozen=True)
class BatchResult:
    results: tuple[TaskResult, ...]
    total_duration: int
    all_success: bool

    @classmethod
    def collect(cls, results: Sequence[TaskResult], total_duration: int) -> BatchResult:
        return cls(tuple(results), total_duration, all(r.success for r in results))

    def failed(self) -> list[TaskResult]:
        return [r for r in self.results if not r.success]


@dataclass(frozen=True)
class CommandSpec:
    command: str | tuple[str, ...]


@dataclass(frozen=True)
class CallableSpec:
    fn: Callable[..., Any]


TaskSpec = CommandSpec | CallableSpec


def takes_argument(fn: Any) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False

    return any(
        param.kind
        in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.VAR_POSITIONAL,
        )
        for param in signature.parameters.values()
    )


class TaskSpecError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


def _is_argv(spec: Sequence[Any]) -> bool:
    return len(spec) > 0 and all(isinstance(part, str) for part in spec)


def normalize_spec(spec: Any, *, strict: bool = False) -> TaskSpec:
    """Strings are shell lines, lists or tuples of strings are argument vectors."""
    match spec:
        case CommandSpec() | CallableSpec():
            return spec
        case str():
            return CommandSpec(spec)
        case list() if _is_argv(spec):
            return CommandSpec(tuple(spec))
        case ("command", str() as command):
            return CommandSpec(command)
        case ("callable" | "function", fn) if callable(fn):
            return CallableSpec(fn)
        case tuple() if _is_argv(spec):
            return CommandSpec(spec)
        case _ if callable(spec):
            return CallableSpec(spec)

    if strict:
        raise TaskSpecError(f"Unknown task spec: {spec!r}")

    logger.warning("Unknown task spec type %s, treating it as a function", type(spec).__name__)
    diagnostic = f"Unknown task spec: {spec!r}"
    return CallableSpec(lambda: diagnostic)
