"""Async database service with SQLModel and SQLAlchemy 2.0.

Stores workflow definitions and run records. Every method raises
`StorageError` when the database fails; callers decide whether that fails a
run, skips a scheduler sweep or becomes an HTTP 500.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from sqlmodel import SQLModel, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from core.config import Settings
from core.logging import get_logger
from models.database import Workflow, WorkflowRun
from services.execution.exceptions import StorageError

logger = get_logger(__name__)


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            # Disable verbose database and asyncio logging
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

            engine_kwargs: Dict[str, Any] = {"echo": self.settings.database_echo}
            # SQLite uses a static pool; sizes only apply to server databases
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            # Create session factory
            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            # Create tables
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", url=self.settings.database_url)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise StorageError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ============================================================================
    # Workflows
    # ============================================================================

    async def save_workflow(self, data: Dict[str, Any]) -> Workflow:
        """Create or update a workflow definition."""
        try:
            async with self.get_session() as session:
                existing = None
                if data.get("id"):
                    existing = await session.get(Workflow, data["id"])

                if existing:
                    existing.name = data["name"]
                    existing.enabled = data.get("enabled", existing.enabled)
                    existing.user_id = data.get("user_id", existing.user_id)
                    existing.nodes = list(data.get("nodes") or [])
                    existing.connections = list(data.get("connections") or [])
                    existing.updated_at = datetime.now(timezone.utc)
                else:
                    fields = {k: data[k] for k in ("id", "name", "enabled", "user_id",
                                                   "nodes", "connections") if data.get(k) is not None}
                    existing = Workflow(**fields)
                    session.add(existing)

                await session.commit()
                await session.refresh(existing)
                logger.info("Workflow saved", workflow_id=existing.id, enabled=existing.enabled)
                return existing

        except SQLAlchemyError as e:
            logger.error("Failed to save workflow", workflow_id=data.get("id"), error=str(e))
            raise StorageError(f"Failed to save workflow: {e}") from e

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get workflow by ID."""
        try:
            async with self.get_session() as session:
                return await session.get(Workflow, workflow_id)

        except SQLAlchemyError as e:
            logger.error("Failed to get workflow", workflow_id=workflow_id, error=str(e))
            raise StorageError(f"Failed to get workflow: {e}") from e

    async def list_workflows(self, user_id: Optional[str] = None) -> List[Workflow]:
        """Get all workflows, most recently updated first."""
        try:
            async with self.get_session() as session:
                stmt = select(Workflow).order_by(Workflow.updated_at.desc())
                if user_id:
                    stmt = stmt.where(Workflow.user_id == user_id)
                result = await session.execute(stmt)
                return list(result.scalars().all())

        except SQLAlchemyError as e:
            logger.error("Failed to list workflows", error=str(e))
            raise StorageError(f"Failed to list workflows: {e}") from e

    async def list_enabled_workflows(self) -> List[Workflow]:
        """Get enabled workflows (scheduler sweep input)."""
        try:
            async with self.get_session() as session:
                stmt = select(Workflow).where(Workflow.enabled == True)  # noqa: E712
                result = await session.execute(stmt)
                return list(result.scalars().all())

        except SQLAlchemyError as e:
            logger.error("Failed to list enabled workflows", error=str(e))
            raise StorageError(f"Failed to list enabled workflows: {e}") from e

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow and its runs; False if it did not exist."""
        try:
            async with self.get_session() as session:
                workflow = await session.get(Workflow, workflow_id)
                if not workflow:
                    return False

                runs = await session.execute(select(WorkflowRun).where(WorkflowRun.workflow_id == workflow_id))
                for run in runs.scalars().all():
                    await session.delete(run)
                await session.delete(workflow)
                await session.commit()
                logger.info("Workflow deleted", workflow_id=workflow_id)
                return True

        except SQLAlchemyError as e:
            logger.error("Failed to delete workflow", workflow_id=workflow_id, error=str(e))
            raise StorageError(f"Failed to delete workflow: {e}") from e

    # ============================================================================
    # Runs
    # ============================================================================

    async def create_run(self, workflow_id: str, user_id: Optional[str] = None) -> WorkflowRun:
        """Insert a run record in status running."""
        try:
            async with self.get_session() as session:
                run = WorkflowRun(workflow_id=workflow_id, user_id=user_id, status="running", logs=[])
                session.add(run)
                await session.commit()
                await session.refresh(run)
                return run

        except SQLAlchemyError as e:
            logger.error("Failed to create run", workflow_id=workflow_id, error=str(e))
            raise StorageError(f"Failed to create run: {e}") from e

    async def append_run_log(self, run_id: str, entry: Dict[str, Any]) -> None:
        """Append one entry to a run's log."""
        try:
            async with self.get_session() as session:
                run = await session.get(WorkflowRun, run_id)
                if not run:
                    raise StorageError(f"Run not found: {run_id}")
                # Reassign so the JSON column is flagged dirty
                run.logs = [*(run.logs or []), entry]
                await session.commit()

        except SQLAlchemyError as e:
            logger.error("Failed to append run log", run_id=run_id, error=str(e))
            raise StorageError(f"Failed to append run log: {e}") from e

    async def finalize_run(self, run_id: str, status: str,
                           completed_at: Optional[datetime] = None) -> WorkflowRun:
        """Set the terminal status and stamp the workflow's last_run_at."""
        completed_at = completed_at or datetime.now(timezone.utc)
        try:
            async with self.get_session() as session:
                run = await session.get(WorkflowRun, run_id)
                if not run:
                    raise StorageError(f"Run not found: {run_id}")
                run.status = status
                run.completed_at = completed_at

                workflow = await session.get(Workflow, run.workflow_id)
                if workflow:
                    workflow.last_run_at = completed_at

                await session.commit()
                await session.refresh(run)
                return run

        except SQLAlchemyError as e:
            logger.error("Failed to finalize run", run_id=run_id, status=status, error=str(e))
            raise StorageError(f"Failed to finalize run: {e}") from e

    async def get_run(self, run_id: str) -> Optional[WorkflowRun]:
        """Get run by ID."""
        try:
            async with self.get_session() as session:
                return await session.get(WorkflowRun, run_id)

        except SQLAlchemyError as e:
            logger.error("Failed to get run", run_id=run_id, error=str(e))
            raise StorageError(f"Failed to get run: {e}") from e

    async def list_runs(self, workflow_id: Optional[str] = None, user_id: Optional[str] = None,
                        limit: int = 50) -> List[WorkflowRun]:
        """Recent runs, newest first."""
        try:
            async with self.get_session() as session:
                stmt = select(WorkflowRun).order_by(WorkflowRun.started_at.desc()).limit(limit)
                if workflow_id:
                    stmt = stmt.where(WorkflowRun.workflow_id == workflow_id)
                if user_id:
                    stmt = stmt.where(WorkflowRun.user_id == user_id)
                result = await session.execute(stmt)
                return list(result.scalars().all())

        except SQLAlchemyError as e:
            logger.error("Failed to list runs", workflow_id=workflow_id, error=str(e))
            raise StorageError(f"Failed to list runs: {e}") from e
