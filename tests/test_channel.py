# tests/test_channel.py
from __future__ import annotations

import pytest

from argos.command.channel import (
    PipeChannel,
    PtyChannel,
    normalize_exit_code,
    open_channel,
    pty_available,
)


def _sh(script: str) -> list[str]:
    return ["/bin/sh", "-c", script]


def test_pipe_channel_collects_output_and_exit_code() -> None:
    with open_channel(_sh("echo one; echo two 1>&2; exit 7")) as channel:
        collected = channel.collect(5)

    assert isinstance(channel, PipeChannel)
    assert not collected.timed_out
    assert collected.exit_code == 7
    assert collected.output.splitlines() == [b"one", b"two"]


def test_collect_stops_at_deadline_and_terminate_reaps() -> None:
    with open_channel(_sh("echo started; sleep 5")) as channel:
        collected = channel.collect(0.3)
        channel.terminate(grace_s=1.0)

        assert collected.timed_out
        assert collected.exit_code is None
        assert collected.output == b"started\n"
        assert channel._process.poll() is not None


def test_terminate_on_finished_process_is_a_no_op() -> None:
    with open_channel(_sh("true")) as channel:
        assert channel.collect(5).exit_code == 0
        channel.terminate()


def test_missing_executable_raises_file_not_found() -> None:
    with pytest.raises(FileNotFoundError):
        open_channel(["argos-definitely-not-a-binary"])


@pytest.mark.parametrize("code, expected", [(0, 0), (3, 3), (-9, 137), (-15, 143)])
def test_normalize_exit_code(code: int, expected: int) -> None:
    assert normalize_exit_code(code) == expected


@pytest.mark.skipif(not pty_available(), reason="no pseudo-terminal support")
def test_pty_channel_gives_child_a_terminal() -> None:
    with open_channel(_sh("test -t 1 && echo tty; exit 2"), use_pty=True) as channel:
        collected = channel.collect(5)

    assert isinstance(channel, PtyChannel)
    assert collected.exit_code == 2
    assert b"tty" in collected.output


def test_pipe_channel_is_not_a_terminal() -> None:
    with open_channel(_sh("test -t 1 || echo pipe")) as channel:
        collected = channel.collect(5)

    assert collected.output == b"pipe\n"
