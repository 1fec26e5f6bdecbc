from .command import CommandExecutor, CommandResult, ExecMode, ProcessTerminator
from .config import ConfigError, Settings, load_config
from .log import LoggingSink, LogSink, NullSink, configure_logging
from .tasks import BackgroundTasks, BatchResult, TaskOrchestrator, TaskResult, define_steps

__version__ = "0.1.0"

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "ExecMode",
    "ProcessTerminator",
    "TaskOrchestrator",
    "TaskResult",
    "BatchResult",
    "BackgroundTasks",
    "define_steps",
    "Settings",
    "ConfigError",
    "load_config",
    "LogSink",
    "LoggingSink",
    "NullSink",
    "configure_logging",
    "__version__",
]
