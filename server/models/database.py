"""SQLModel database models and tables."""

import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from sqlalchemy import func


def _new_id() -> str:
    return str(uuid.uuid4())


class Workflow(SQLModel, table=True):
    """Workflow definitions."""

    __tablename__ = "workflows"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    user_id: Optional[str] = Field(default=None, index=True, max_length=255)
    name: str = Field(max_length=255)
    enabled: bool = Field(default=False, index=True)
    nodes: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    connections: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    last_run_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), index=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )


class WorkflowRun(SQLModel, table=True):
    """One execution attempt of a workflow with its append-only log."""

    __tablename__ = "workflow_runs"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    workflow_id: str = Field(foreign_key="workflows.id", index=True, max_length=255)
    user_id: Optional[str] = Field(default=None, index=True, max_length=255)
    status: str = Field(default="running", index=True, max_length=50)
    logs: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), index=True)
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )
