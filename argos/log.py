from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from argos.command.types import CommandResult
    from argos.tasks.types import TaskResult

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@runtime_checkable
class LogSink(Protocol):
    def log(
        self, level: str, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None: ...

    def log_command(self, result: CommandResult) -> None: ...

    def log_task(self, result: TaskResult) -> None: ...


class NullSink:
    def log(
        self, level: str, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        return None

    def log_command(self, result: CommandResult) -> None:
        return None

    def log_task(self, result: TaskResult) -> None:
        return None


class LoggingSink:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("argos.events")

    def log(
        self, level: str, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        levelno = _LEVELS.get(level.lower(), logging.INFO)
        meta = dict(metadata or {})
        if meta:
            details = ", ".join(f"{key}={value!r}" for key, value in meta.items())
            self._logger.log(levelno, "%s (%s)", message, details, extra={"metadata": meta})
        else:
            self._logger.log(levelno, "%s", message, extra={"metadata": meta})

    def log_command(self, result: CommandResult) -> None:
        if result.exit_code == 0:
            level = "info"
        elif result.exit_code == 1:
            level = "warning"
        else:
            level = "error"

        self.log(
            level,
            f"Command executed: {command_line(result)}",
            {
                "args": list(result.args),
                "exit_code": result.exit_code,
                "duration_ms": result.duration,
                "success": result.success,
                "error": result.error,
                "output": result.output.strip(),
            },
        )

    def log_task(self, result: TaskResult) -> None:
        status = "SUCCESS" if result.success else "FAILED"
        self.log(
            "info" if result.success else "error",
            f"Task executed: {result.task_name} ({status})",
            {
                "task_name": result.task_name,
                "duration_ms": result.duration,
                "success": result.success,
                "error": result.error_message,
            },
        )


def command_line(result: CommandResult) -> str:
    if len(result.args) == 2 and result.args[0] == "-c":
        return result.args[1]
    return " ".join((result.command, *result.args))


def resolve_sink(sink: LogSink | None) -> LogSink:
    return sink if sink is not None else LoggingSink()


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    # Production only surfaces errors
    if os.getenv("ARGOS_ENV", "").lower() == "prod":
        level = max(level, logging.ERROR)

    root = logging.getLogger("argos")
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
