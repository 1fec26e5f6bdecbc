from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from .executor import CommandExecutor
from .types import CommandResult

logger = logging.getLogger(__name__)

PROCESS_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_SIGNAL_TIMEOUT_MS = 5_000
_QUERY_TIMEOUT_MS = 2_000


class KillStatus(Enum):
    KILLED = "killed"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class KillOutcome:
    name: str
    status: KillStatus
    reason: str | None = None


def is_valid_process_name(name: Any) -> bool:
    return isinstance(name, str) and PROCESS_NAME_RE.fullmatch(name) is not None


class ProcessTerminator:
    def __init__(self, executor: CommandExecutor | None = None, *, grace_period_ms: int | None = None):
        self.executor = executor or CommandExecutor()
        if grace_period_ms is None:
            grace_period_ms = self.executor.settings.grace_period_ms
        self.grace_period_ms = grace_period_ms

    def kill_process(self, name: Any) -> CommandResult:
        if not isinstance(name, str):
            self.executor.sink.log("error", "Process name must be a string", {"name": repr(name)})
            return CommandResult.failure(
                "kill", (), "Process name must be a string", 1, 0, "Process name must be a string"
            )

        if not is_valid_process_name(name):
            self.executor.sink.log("error", f"Invalid process name: {name}")
            return CommandResult.failure(
                "kill", (name,), "Invalid process name", 1, 0, "Invalid process name"
            )

        return self.executor.run(f"pkill -TERM {name}")

    def kill_by_name(self, names: Sequence[str]) -> list[KillOutcome]:
        self.executor.sink.log("info", f"Killing processes: {list(names)!r}")
        return [self._kill_one(name) for name in names]

    def _kill_one(self, name: str) -> KillOutcome:
        if not is_valid_process_name(name):
            return KillOutcome(str(name), KillStatus.ERROR, "invalid_name")

        output, code = self.executor.raw(f"pkill -TERM {name}", timeout_ms=_SIGNAL_TIMEOUT_MS)
        if code == 1:
            return KillOutcome(name, KillStatus.NOT_FOUND)
        if code != 0:
            self.executor.sink.log(
                "error", f"Error killing process {name}: {output.strip()} ({code})"
            )
            return KillOutcome(name, KillStatus.ERROR, "kill_term_failed")

        time.sleep(self.grace_period_ms / 1000)

        _, code = self.executor.raw(f"pgrep {name}", timeout_ms=_QUERY_TIMEOUT_MS)
        if code == 1:
            logger.debug("%s exited within the grace period", name)
            return KillOutcome(name, KillStatus.KILLED)
        if code != 0:
            return KillOutcome(name, KillStatus.ERROR, "process_query_failed")

        _, code = self.executor.raw(f"pkill -KILL {name}", timeout_ms=_SIGNAL_TIMEOUT_MS)
        if code == 0:
            return KillOutcome(name, KillStatus.KILLED)
        return KillOutcome(name, KillStatus.ERROR, "forceful_kill_failed")
