from .background import BackgroundHandle, BackgroundTasks
from .orchestrator import TaskOrchestrator
from .progress import Progress, ProgressStatus, Step, define_steps, format_for_display
from .types import (
    BatchResult,
    CallableSpec,
    CommandSpec,
    TaskResult,
    TaskSpec,
    TaskSpecError,
    normalize_spec,
)

__all__ = [
    "TaskOrchestrator",
    "TaskResult",
    "BatchResult",
    "TaskSpec",
    "CommandSpec",
    "CallableSpec",
    "TaskSpecError",
    "normalize_spec",
    "Progress",
    "ProgressStatus",
    "Step",
    "define_steps",
    "format_for_display",
    "BackgroundTasks",
    "BackgroundHandle",
]
