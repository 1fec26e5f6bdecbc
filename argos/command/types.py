from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


class ExecMode(Enum):
    RAW = "raw"
    NORMAL = "normal"
    SILENT = "silent"
    INTERACTIVE = "interactive"
    SUDO = "sudo"


@dataclass(frozen=True)
class CommandResult:
    command: str
    args: tuple[str, ...]
    output: str
    exit_code: int
    duration: int
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @classmethod
    def ok(
        cls, command: str, args: tuple[str, ...], output: str, duration: int
    ) -> CommandResult:
        return cls(command, tuple(args), output, 0, duration)

    @classmethod
    def failure(
        cls,
        command: str,
        args: tuple[str, ...],
        output: str,
        exit_code: int,
        duration: int,
        error: str | None = None,
    ) -> CommandResult:
        if exit_code == 0:
            raise ValueError("a failed CommandResult needs a non-zero exit code")
        return cls(command, tuple(args), output, exit_code, duration, error)

    @property
    def timed_out(self) -> bool:
        return self.exit_code == EXIT_TIMEOUT and self.error is not None


class ResponseType(Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CommandResponse:
    code: int
    message: list[str] = field(default_factory=list)
    type: ResponseType = ResponseType.SUCCESS


class ChannelError(Exception):
    """A process channel (pipe or pseudo-terminal) could not be allocated."""

    def __init__(self, *args: object) -> None:
        super().__init__(*args)
