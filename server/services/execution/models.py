"""Execution engine state models.

Jobs, runs, node results and log entries. All `to_dict()` outputs are
JSON-serializable so they can be stored in the run record and returned by
the API unchanged.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Callable, Awaitable

from constants import SOURCE_MANUAL, SOURCE_SCHEDULER


class JobStatus(str, Enum):
    """Job lifecycle inside the queue.

    State transitions:
        QUEUED -> EXECUTING -> COMPLETED
                            -> FAILED
    """
    QUEUED = "queued"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Persisted run states."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on read; stored datetimes are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_jsonable(value: Any) -> Any:
    """Round-trip through JSON so payloads can be stored in a JSON column."""
    return json.loads(json.dumps(value, default=str))


def _elapsed_ms(start: Optional[datetime], end: Optional[datetime]) -> int:
    if not start or not end:
        return 0
    return max(0, int((end - start).total_seconds() * 1000))


@dataclass
class Job:
    """A queued request to perform one run of a workflow snapshot."""
    id: str
    workflow: Dict[str, Any]
    run_id: str
    position: int
    source: str = SOURCE_MANUAL
    trigger_data: Optional[Dict[str, Any]] = None
    status: JobStatus = JobStatus.QUEUED
    queued_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def create(cls, workflow: Dict[str, Any], run_id: str, position: int,
               source: str = SOURCE_MANUAL,
               trigger_data: Optional[Dict[str, Any]] = None) -> "Job":
        prefix = "scheduled" if source == SOURCE_SCHEDULER else "job"
        return cls(
            id=f"{prefix}_{uuid.uuid4().hex[:16]}",
            workflow=workflow,
            run_id=run_id,
            position=position,
            source=source,
            trigger_data=trigger_data,
        )

    @property
    def workflow_id(self) -> Optional[str]:
        return self.workflow.get("id")

    @property
    def workflow_name(self) -> str:
        return self.workflow.get("name") or self.workflow_id or ""

    @property
    def duration(self) -> int:
        """Milliseconds from start to completion."""
        return _elapsed_ms(self.started_at, self.completed_at)

    def terminal_result(self, results: Optional[List[Dict[str, Any]]] = None,
                        error: Optional[str] = None) -> Dict[str, Any]:
        """Build the result object served for a finished job."""
        result = {
            "job_id": self.id,
            "run_id": self.run_id,
            "workflow_id": self.workflow_id,
            "source": self.source,
            "status": self.status.value,
            "queued_at": self.queued_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration": self.duration,
            "success": self.status == JobStatus.COMPLETED,
        }
        if self.status == JobStatus.COMPLETED:
            result["results"] = results or []
        else:
            result["error"] = error
        return result


@dataclass
class NodeResult:
    """Outcome of one node in one run."""
    node_id: str
    label: str
    kind: str
    subtype: str
    duration: int
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "node_id": self.node_id,
            "label": self.label,
            "kind": self.kind,
            "subtype": self.subtype,
            "duration": self.duration,
            "success": self.success,
        }
        if self.success:
            d["result"] = to_jsonable(self.result or {})
        else:
            d["error"] = self.error
        return d


@dataclass
class LogEntry:
    """One line of a run's append-only log."""
    timestamp: datetime
    level: LogLevel
    message: str
    node_id: Optional[str] = None
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "node_id": self.node_id,
            "data": to_jsonable(self.data) if self.data is not None else None,
        }


class RunLog:
    """Writes log entries for one run, in order, to run storage.

    Timestamps never go backwards within a run even if the wall clock does.
    Storage failures propagate to the caller.
    """

    def __init__(self, run_id: str,
                 append_fn: Optional[Callable[[str, Dict[str, Any]], Awaitable[None]]] = None):
        self.run_id = run_id
        self._append = append_fn
        self._last: Optional[datetime] = None
        self.entries: List[LogEntry] = []

    async def __call__(self, level: LogLevel, message: str,
                       node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        now = utc_now()
        if self._last is not None and now < self._last:
            now = self._last
        self._last = now

        entry = LogEntry(timestamp=now, level=level, message=message, node_id=node_id, data=data)
        if self._append is not None:
            await self._append(self.run_id, entry.to_dict())
        self.entries.append(entry)
        return entry

    async def info(self, message: str, node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        return await self(LogLevel.INFO, message, node_id, data)

    async def warn(self, message: str, node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        return await self(LogLevel.WARN, message, node_id, data)

    async def error(self, message: str, node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        return await self(LogLevel.ERROR, message, node_id, data)


def template_key(label: str) -> str:
    """Key used to reference a node's output in templates (lowercase, no spaces)."""
    return re.sub(r'\s+', '', label.lower())


@dataclass
class RunContext:
    """Per-run data context shared by the nodes of one run.

    Holds successful node outputs keyed by node id, the most recent
    successful output (`previous_node`), the most recent failure (`error`)
    and the payload that triggered the run (`trigger`).
    """
    run_id: str
    workflow_id: str
    log: RunLog
    trigger_data: Optional[Dict[str, Any]] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    previous_node_id: Optional[str] = None
    last_error: Optional[Dict[str, Any]] = None

    def record_success(self, node_id: str, label: str, payload: Any) -> None:
        self.outputs[node_id] = payload
        if label:
            self.labels[template_key(label)] = node_id
        self.previous_node_id = node_id

    def record_failure(self, node_id: str, error: str) -> None:
        self.last_error = {"message": error, "node_id": node_id}

    def previous_output(self) -> Any:
        if self.previous_node_id is None:
            return None
        return self.outputs.get(self.previous_node_id)

    def output_of(self, reference: str) -> Any:
        """Output by node id or by label key."""
        if reference in self.outputs:
            return self.outputs[reference]
        node_id = self.labels.get(template_key(reference))
        return self.outputs.get(node_id) if node_id else None

    def template_data(self) -> Dict[str, Any]:
        """Everything a `{{key.path}}` template may reference."""
        data: Dict[str, Any] = {}
        for key, node_id in self.labels.items():
            data[key] = self.outputs.get(node_id)
        data.update(self.outputs)
        if self.previous_node_id is not None:
            data["previous_node"] = self.previous_output()
        if self.last_error is not None:
            data["error"] = self.last_error
        if self.trigger_data is not None:
            data["trigger"] = self.trigger_data
        return data
