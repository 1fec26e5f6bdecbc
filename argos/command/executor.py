from __future__ import annotations

import logging
import os
import shlex
import shutil
import sys
import time
from typing import Any, Mapping, NoReturn, Sequence

from argos.config import Settings
from argos.log import LogSink, resolve_sink

from .channel import open_channel
from .types import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    ChannelError,
    CommandResponse,
    CommandResult,
    ExecMode,
    ResponseType,
)

logger = logging.getLogger(__name__)

Command = str | Sequence[str]


def halt(code: int = 0) -> NoReturn:
    sys.exit(code)


def elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


def process_response(
    code: int,
    *,
    success_message: str | None = None,
    warning_message: str | None = None,
    error_message: str | None = None,
) -> CommandResponse:
    match code:
        case 0:
            message, kind = success_message, ResponseType.SUCCESS
        case 1:
            message, kind = warning_message, ResponseType.WARNING
        case _:
            message, kind = error_message, ResponseType.ERROR

    lines = [line for line in (message or "").strip().split("\n") if line]
    return CommandResponse(code, lines, kind)


class CommandExecutor:
    def __init__(self, settings: Settings | None = None, sink: LogSink | None = None):
        self.settings = settings or Settings()
        self.sink = resolve_sink(sink)

    def execute(self, mode: ExecMode, command: Command, **options: Any) -> Any:
        match mode:
            case ExecMode.RAW:
                return self.raw(command, **options)
            case ExecMode.NORMAL:
                return self.run(command, **options)
            case ExecMode.SILENT:
                return self.silent(command, **options)
            case ExecMode.INTERACTIVE:
                return self.interactive(command, **options)
            case ExecMode.SUDO:
                return self.sudo(command, **options)
            case _:
                raise AssertionError("Unreachable")

    def raw(
        self,
        command: Command,
        *,
        timeout_ms: int | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> tuple[str, int]:
        result = self._spawn(self._argv(command), timeout_ms=timeout_ms, env=env, cwd=cwd)
        return result.output, result.exit_code

    def run(
        self,
        command: Command,
        *,
        halt: bool = False,
        timeout_ms: int | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        result = self._spawn(self._argv(command), timeout_ms=timeout_ms, env=env, cwd=cwd)
        self.sink.log_command(result)
        return self._handle_halt(result, halt)

    def exec_command(
        self, command: str, args: Sequence[str] = (), **options: Any
    ) -> CommandResult:
        full_command = command if not args else f"{command} {' '.join(args)}"
        return self.run(full_command, **options)

    def silent(self, command: Command, **options: Any) -> int:
        if not isinstance(command, str):
            command = shlex.join(command)
        if command.strip():
            command = f"{{ {command}\n}} >/dev/null 2>&1"
        return self.run(command, **options).exit_code

    def interactive(
        self,
        command: Command,
        *,
        halt: bool = False,
        timeout_ms: int | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        result = self._spawn(
            self._argv(command),
            use_pty=True,
            inherit_stdin=True,
            timeout_ms=timeout_ms,
            env=env,
            cwd=cwd,
        )
        self._log_streamed(result)
        return self._handle_halt(result, halt)

    def sudo(
        self,
        command: Command,
        *,
        interactive: bool = False,
        halt: bool = False,
        timeout_ms: int | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        if not isinstance(command, str):
            command = shlex.join(command)
        started = time.monotonic()
        self.sink.log(
            "warning", f"SUDO command execution attempted: {command}", {"command": command}
        )

        executable = shutil.which("sudo")
        if executable is None:
            result = CommandResult.failure(
                command,
                (),
                "sudo command not found",
                EXIT_NOT_FOUND,
                elapsed_ms(started),
                "sudo command not found",
            )
            self.sink.log_command(result)
            return self._handle_halt(result, halt)

        env = {**os.environ, "SUDO_ASKPASS": self.settings.sudo_askpass}
        result = self._spawn(
            [executable, "-A", self.settings.shell, "-c", command],
            use_pty=interactive,
            inherit_stdin=interactive,
            timeout_ms=timeout_ms,
            env=env,
            cwd=cwd,
        )
        self._log_streamed(result)
        return self._handle_halt(result, halt)

    def _argv(self, command: Command) -> list[str]:
        if isinstance(command, str):
            return [self.settings.shell, "-c", command]
        argv = [str(part) for part in command]
        if not argv:
            return [self.settings.shell, "-c", ""]
        return argv

    def _spawn(
        self,
        argv: list[str],
        *,
        use_pty: bool = False,
        inherit_stdin: bool = False,
        timeout_ms: int | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        timeout_ms = timeout_ms or self.settings.command_timeout_ms
        head, tail = argv[0], tuple(argv[1:])
        started = time.monotonic()

        try:
            channel = open_channel(
                argv, use_pty=use_pty, env=env, cwd=cwd, inherit_stdin=inherit_stdin
            )
        except FileNotFoundError:
            return CommandResult.failure(
                head, tail, "", EXIT_NOT_FOUND, elapsed_ms(started), f"Command not found: {head}"
            )
        except PermissionError:
            return CommandResult.failure(
                head, tail, "", 126, elapsed_ms(started), f"Permission denied: {head}"
            )
        except OSError as exc:
            raise ChannelError(f"Cannot allocate a process channel for {head}: {exc}") from exc

        with channel:
            collected = channel.collect(timeout_ms / 1000)
            if collected.timed_out:
                channel.terminate()

        output = collected.output.decode("utf-8", errors="replace")
        duration = elapsed_ms(started)

        if collected.exit_code is None:
            return CommandResult.failure(
                head,
                tail,
                output,
                EXIT_TIMEOUT,
                duration,
                f"Command timed out after {timeout_ms}ms",
            )

        return CommandResult(head, tail, output, collected.exit_code, duration)

    def _log_streamed(self, result: CommandResult) -> None:
        if result.timed_out:
            self.sink.log("error", f"EXEC TIMEOUT -> {result.output.strip()}")
        self.sink.log_command(result)

    def _handle_halt(self, result: CommandResult, halt_requested: bool) -> CommandResult:
        if halt_requested and result.exit_code not in (0, 1):
            self.sink.log(
                "critical",
                f"Error executing command: {result.output.strip()} (code {result.exit_code})",
            )
            logger.critical("Halting after command failure (exit code %d)", result.exit_code)
            halt(result.exit_code)
        return result
