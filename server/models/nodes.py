"""Pydantic models for workflow snapshots and per-subtype node parameters.

Workflow definitions are stored as free-form JSON. Before a run walks them,
they are parsed into a `WorkflowSnapshot` (structure only); each node's
`config` mapping is validated into its subtype's parameter model when the
node is dispatched, so missing keys fail that node at execution time with a
descriptive message instead of failing the save.
"""

import json
from datetime import datetime
from typing import Literal, Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from constants import (
    CONDITION_OPERATORS,
    DATABASE_OPERATIONS,
    DELAY_UNITS,
    KIND_ACTION,
    KIND_LOGIC,
    KIND_TRIGGER,
)


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseNodeParams(BaseModel):
    """Base class for all node parameters."""
    model_config = {"extra": "allow", "populate_by_name": True}


def _require_text(value: Any, name: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{name} is required")
    return value


# =============================================================================
# ACTION NODE MODELS
# =============================================================================

class HttpRequestParams(BaseNodeParams):
    """Parameters for the http action (network-call connector)."""
    url: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    headers: Union[str, Dict[str, Any], None] = "{}"
    body: Union[str, Dict[str, Any], List[Any], None] = None

    @field_validator("url", mode="before")
    @classmethod
    def url_present(cls, v):
        return _require_text(v, "url")

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v):
        return v.upper() if isinstance(v, str) else v

    def header_map(self) -> Dict[str, str]:
        """Headers as a dict; invalid JSON text yields no headers."""
        if isinstance(self.headers, dict):
            return {str(k): str(v) for k, v in self.headers.items()}
        if not self.headers:
            return {}
        try:
            parsed = json.loads(self.headers)
        except json.JSONDecodeError:
            return {}
        return {str(k): str(v) for k, v in parsed.items()} if isinstance(parsed, dict) else {}


class SlackMessageParams(BaseNodeParams):
    """Parameters for the slack action (chat-notify connector)."""
    channel: str
    message: str
    username: str = "AutoFlow Bot"

    @field_validator("channel", mode="before")
    @classmethod
    def channel_present(cls, v):
        return _require_text(v, "channel")

    @field_validator("message", mode="before")
    @classmethod
    def message_present(cls, v):
        return _require_text(v, "message")


class DatabaseOperationParams(BaseNodeParams):
    """Parameters for the database action (data-store connector)."""
    operation: str
    table: str
    query: Optional[str] = None

    @field_validator("operation", mode="before")
    @classmethod
    def known_operation(cls, v):
        _require_text(v, "operation")
        normalized = str(v).strip().capitalize()
        if normalized not in DATABASE_OPERATIONS:
            raise ValueError(f"operation must be one of: {', '.join(DATABASE_OPERATIONS)}")
        return normalized

    @field_validator("table", mode="before")
    @classmethod
    def table_present(cls, v):
        return _require_text(v, "table")


# =============================================================================
# TRIGGER NODE MODELS
# =============================================================================

class ScheduleTriggerParams(BaseNodeParams):
    """Parameters for the schedule trigger."""
    interval: Optional[str] = None
    timezone: str = "UTC"


class WebhookTriggerParams(BaseNodeParams):
    """Parameters for the webhook trigger."""
    url: Optional[str] = None
    method: str = "POST"


# =============================================================================
# LOGIC NODE MODELS
# =============================================================================

class ConditionalParams(BaseNodeParams):
    """Parameters for the conditional logic node."""
    condition_type: Optional[str] = Field(default=None, alias="conditionType")
    operand1: Any
    operator: str
    operand2: Any

    @field_validator("operator", mode="before")
    @classmethod
    def operator_present(cls, v):
        return _require_text(v, "operator")


class DelayParams(BaseNodeParams):
    """Parameters for the delay logic node."""
    duration: float = Field(default=5, ge=0, allow_inf_nan=False)
    unit: str = "seconds"

    @field_validator("unit", mode="before")
    @classmethod
    def known_unit(cls, v):
        if v is None or v == "":
            return "seconds"
        if v not in DELAY_UNITS:
            raise ValueError(f"unit must be one of: {', '.join(DELAY_UNITS)}")
        return v

    @property
    def seconds(self) -> float:
        return self.duration * DELAY_UNITS[self.unit]


class ErrorHandlerParams(BaseNodeParams):
    """Parameters for the error-handler logic node."""
    action: str
    message: str = ""
    retry_count: int = Field(default=0, alias="retryCount", ge=0)

    @field_validator("action", mode="before")
    @classmethod
    def action_present(cls, v):
        return _require_text(v, "action")


class TransformParams(BaseNodeParams):
    """Parameters for the transform logic node."""
    transformation_type: str = Field(alias="transformationType")
    input_field: Optional[str] = Field(default=None, alias="inputField")
    output_field: Optional[str] = Field(default=None, alias="outputField")
    source_node: Optional[str] = Field(default=None, alias="sourceNode")
    template: Optional[str] = None
    script: Optional[str] = None

    @field_validator("transformation_type", mode="before")
    @classmethod
    def type_present(cls, v):
        return _require_text(v, "transformationType")


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one readable sentence per field."""
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        if err.get("type") == "missing":
            messages.append(f"{field} is required")
        elif err.get("type") == "value_error" and err.get("ctx", {}).get("error"):
            messages.append(str(err["ctx"]["error"]))
        else:
            messages.append(f"{field}: {err.get('msg')}")
    return "; ".join(messages)


# =============================================================================
# WORKFLOW SNAPSHOT MODELS
# =============================================================================

class WorkflowNode(BaseModel):
    """One step of a workflow as the engine sees it."""
    id: str = Field(min_length=1)
    kind: Literal["trigger", "action", "logic"]
    subtype: str = ""
    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    x: Optional[float] = None
    y: Optional[float] = None
    output_handles: Optional[List[Dict[str, Any]]] = Field(default=None, alias="outputHandles")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def flatten_editor_shape(cls, data: Any) -> Any:
        """Accept `type` for `kind` and editor nodes that nest fields under `data`."""
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        nested = merged.get("data")
        if isinstance(nested, dict):
            for key, value in nested.items():
                merged.setdefault(key, value)
        if "kind" not in merged and merged.get("type") in (KIND_TRIGGER, KIND_ACTION, KIND_LOGIC):
            merged["kind"] = merged["type"]
        if merged.get("config") is None:
            merged["config"] = {}
        return merged

    @property
    def display_label(self) -> str:
        return self.label or self.subtype or self.id


class WorkflowConnection(BaseModel):
    """Directed edge between two nodes (data only, not used for ordering)."""
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class WorkflowSnapshot(BaseModel):
    """Immutable view of a workflow for the duration of one run."""
    id: str
    name: str = ""
    user_id: Optional[str] = None
    enabled: bool = False
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)
    last_run_at: Optional[datetime] = None

    model_config = {"frozen": True, "extra": "ignore"}

    @classmethod
    def from_record(cls, record: Any) -> "WorkflowSnapshot":
        """Build from a `models.database.Workflow` row or a plain dict."""
        if isinstance(record, dict):
            return cls.model_validate(record)
        return cls.model_validate({
            "id": record.id,
            "name": record.name,
            "user_id": record.user_id,
            "enabled": record.enabled,
            "nodes": record.nodes or [],
            "connections": record.connections or [],
            "last_run_at": record.last_run_at,
        })

    def find_node(self, kind: str, subtype: str) -> Optional[WorkflowNode]:
        return next((n for n in self.nodes if n.kind == kind and n.subtype == subtype), None)


# =============================================================================
# API REQUEST MODELS
# =============================================================================

class WorkflowSaveRequest(BaseModel):
    """Request model for creating or updating a workflow definition."""
    id: Optional[str] = None
    name: str = Field(min_length=1)
    enabled: bool = False
    user_id: Optional[str] = None
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    connections: List[Dict[str, Any]] = Field(default_factory=list)
