"""Spawn a child over a pipe or a pseudo-terminal and collect its combined output."""

from __future__ import annotations

import contextlib
import errno
import logging
import os
import selectors
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class Collected:
    output: bytes
    # None when the deadline passed before the process exited
    exit_code: int | None

    @property
    def timed_out(self) -> bool:
        return self.exit_code is None


def pty_available() -> bool:
    return os.name == "posix"


def normalize_exit_code(code: int) -> int:
    # Popen reports death-by-signal as -N; shells report 128 + N
    if code < 0:
        return 128 - code
    return code


class ProcessChannel:
    def __init__(self, process: subprocess.Popen[bytes], fd: int, started: float):
        self._process = process
        self._fd = fd
        self._started = started
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    def __enter__(self) -> ProcessChannel:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _read_chunk(self) -> bytes:
        return os.read(self._fd, _CHUNK_SIZE)

    def collect(self, timeout_s: float) -> Collected:
        deadline = self._started + timeout_s
        buf = bytearray()

        with selectors.DefaultSelector() as selector:
            selector.register(self._fd, selectors.EVENT_READ)
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return Collected(bytes(buf), None)
                if not selector.select(remaining):
                    continue
                chunk = self._read_chunk()
                if not chunk:
                    break
                buf.extend(chunk)

        remaining = max(0.0, deadline - time.monotonic())
        try:
            code = self._process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            return Collected(bytes(buf), None)

        return Collected(bytes(buf), normalize_exit_code(code))

    def terminate(self, grace_s: float = 2.0) -> None:
        if self._process.poll() is not None:
            return

        logger.debug("Terminating process group %d", self._process.pid)
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(self._process.pid, signal.SIGTERM)
        try:
            self._process.wait(timeout=grace_s)
            return
        except subprocess.TimeoutExpired:
            pass

        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(self._process.pid, signal.SIGKILL)
        with contextlib.suppress(subprocess.TimeoutExpired):
            self._process.wait(timeout=grace_s)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._close_fd()

    def _close_fd(self) -> None:
        raise NotImplementedError


class PipeChannel(ProcessChannel):
    @classmethod
    def spawn(
        cls,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        inherit_stdin: bool = False,
    ) -> PipeChannel:
        started = time.monotonic()
        process = subprocess.Popen(
            list(argv),
            stdin=None if inherit_stdin else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            env=dict(env) if env is not None else None,
            cwd=cwd,
            process_group=0,
        )
        assert process.stdout is not None
        return cls(process, process.stdout.fileno(), started)

    def _close_fd(self) -> None:
        if self._process.stdout is not None:
            self._process.stdout.close()


class PtyChannel(ProcessChannel):
    @classmethod
    def spawn(
        cls,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> PtyChannel:
        import pty

        started = time.monotonic()
        master, slave = pty.openpty()
        try:
            process = subprocess.Popen(
                list(argv),
                stdin=slave,
                stdout=slave,
                stderr=slave,
                env=dict(env) if env is not None else None,
                cwd=cwd,
                start_new_session=True,
            )
        except BaseException:
            os.close(master)
            raise
        finally:
            os.close(slave)
        return cls(process, master, started)

    def _read_chunk(self) -> bytes:
        try:
            return os.read(self._fd, _CHUNK_SIZE)
        except OSError as exc:
            # Linux reports EIO on the master once every slave end is closed
            if exc.errno == errno.EIO:
                return b""
            raise

    def _close_fd(self) -> None:
        with contextlib.suppress(OSError):
            os.close(self._fd)


def open_channel(
    argv: Sequence[str],
    *,
    use_pty: bool = False,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    inherit_stdin: bool = False,
) -> ProcessChannel:
    if use_pty and pty_available():
        return PtyChannel.spawn(argv, env=env, cwd=cwd)
    if use_pty:
        logger.debug("No pseudo-terminal support, falling back to a pipe")
    return PipeChannel.spawn(argv, env=env, cwd=cwd, inherit_stdin=inherit_stdin)
