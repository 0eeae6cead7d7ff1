"""Execution engine package.

Single-process workflow execution with:
- In-process FIFO job queue with one consumer
- Sequential run state machine over the node list
- Per-run data context for template resolution
- Operand comparison for conditional nodes
"""

from .models import (
    JobStatus,
    RunStatus,
    LogLevel,
    Job,
    NodeResult,
    LogEntry,
    RunLog,
    RunContext,
)
from .exceptions import (
    WorkflowEngineError,
    NodeConfigError,
    ConnectorError,
    StorageError,
    WorkflowNotFoundError,
)
from .conditions import (
    evaluate,
    get_nested_value,
    get_available_operators,
    OPERATORS,
)
from .queue import JobQueue
from .runner import RunStateMachine

__all__ = [
    # Models
    "JobStatus",
    "RunStatus",
    "LogLevel",
    "Job",
    "NodeResult",
    "LogEntry",
    "RunLog",
    "RunContext",
    # Exceptions
    "WorkflowEngineError",
    "NodeConfigError",
    "ConnectorError",
    "StorageError",
    "WorkflowNotFoundError",
    # Conditions
    "evaluate",
    "get_nested_value",
    "get_available_operators",
    "OPERATORS",
    # Queue
    "JobQueue",
    # Runner
    "RunStateMachine",
]
