from .channel import PipeChannel, ProcessChannel, PtyChannel, open_channel
from .executor import CommandExecutor, halt, process_response
from .terminator import KillOutcome, KillStatus, ProcessTerminator, is_valid_process_name
from .types import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    ChannelError,
    CommandResponse,
    CommandResult,
    ExecMode,
    ResponseType,
)

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "CommandResponse",
    "ResponseType",
    "ExecMode",
    "ChannelError",
    "EXIT_NOT_FOUND",
    "EXIT_TIMEOUT",
    "ProcessTerminator",
    "KillOutcome",
    "KillStatus",
    "is_valid_process_name",
    "ProcessChannel",
    "PipeChannel",
    "PtyChannel",
    "open_channel",
    "halt",
    "process_response",
]
