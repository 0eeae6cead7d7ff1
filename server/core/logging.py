"""Structured logging configuration.

Every log line emitted while a run is executing carries the run's `run_id`,
`workflow_id` and `job_id`; they are bound as structlog context variables by
`bind_run_context` and merged in by the first processor.
"""

import sys
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

from core.config import Settings


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging with a JSON or console renderer."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, format="%(message)s")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(1, structlog.stdlib.add_logger_name)
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(1, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def bind_run_context(run_id: str, workflow_id: Optional[str] = None,
                     job_id: Optional[str] = None) -> Iterator[None]:
    """Tag every log line emitted inside the block with the run's identifiers.

    Context variables are task-local, so the consumer task's bindings never
    leak into request handlers.
    """
    fields = {"run_id": run_id, "workflow_id": workflow_id, "job_id": job_id}
    with structlog.contextvars.bound_contextvars(**{k: v for k, v in fields.items() if v}):
        yield


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    """Log execution time with additional context."""
    execution_time = end_time - start_time
    logger.info(
        "Operation completed",
        operation=operation,
        execution_time_seconds=round(execution_time, 4),
        **kwargs
    )


def log_connector_call(logger: structlog.BoundLogger, connector: str, node_id: str,
                       success: bool, simulated: bool = False, **kwargs) -> None:
    """One line per external side effect attempted by a connector."""
    log = logger.info if success else logger.warning
    log(
        "Connector call completed",
        connector=connector,
        node_id=node_id,
        success=success,
        simulated=simulated,
        **kwargs
    )
