"""Workflow Service - Facade for enqueueing and running workflows.

Delegates to specialized modules:
- JobQueue: FIFO of pending runs with a single consumer
- RunStateMachine: sequential node walk producing NodeResults
- Database: workflow definitions and run records

Owns the run lifecycle bookkeeping around the state machine: the run record
is created before a job is queued, and on a terminal status the run is
finalized and the workflow's last_run_at stamped.
"""

import time
from typing import Dict, Any, List, Optional, TYPE_CHECKING

from constants import SOURCE_MANUAL
from core.logging import bind_run_context, get_logger, log_execution_time
from services.execution import (
    Job,
    JobQueue,
    NodeResult,
    RunLog,
    RunStateMachine,
    RunStatus,
    StorageError,
    WorkflowNotFoundError,
)
from services.execution.models import as_utc

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from models.database import Workflow, WorkflowRun

logger = get_logger(__name__)


def workflow_to_dict(workflow: "Workflow") -> Dict[str, Any]:
    """JSON-safe dict of a workflow row (job snapshot and API shape)."""
    return workflow.model_dump(mode="json")


def run_to_dict(run: "WorkflowRun") -> Dict[str, Any]:
    started_at = as_utc(run.started_at)
    completed_at = as_utc(run.completed_at)
    duration = None
    if started_at and completed_at:
        duration = max(0, int((completed_at - started_at).total_seconds() * 1000))
    return {
        "id": run.id,
        "workflow_id": run.workflow_id,
        "user_id": run.user_id,
        "status": run.status,
        "started_at": started_at.isoformat() if started_at else None,
        "completed_at": completed_at.isoformat() if completed_at else None,
        "duration": duration,
        "logs": run.logs or [],
    }


class WorkflowService:
    """Workflow execution service.

    Thin facade delegating to specialized modules for:
    - Queueing (JobQueue)
    - Node walking (RunStateMachine)
    - Persistence (Database)
    """

    def __init__(
        self,
        database: "Database",
        job_queue: JobQueue,
        runner: RunStateMachine,
        settings: "Settings",
    ):
        self.database = database
        self.job_queue = job_queue
        self.runner = runner
        self.settings = settings

    async def start(self) -> None:
        """Start consuming the job queue."""
        await self.job_queue.start(self.run_job)

    async def stop(self) -> None:
        await self.job_queue.stop()

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    async def enqueue_run(
        self,
        workflow_id: str,
        source: str = SOURCE_MANUAL,
        trigger_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Queue a run of a stored workflow.

        Raises:
            WorkflowNotFoundError: No workflow with this id
            StorageError: The workflow could not be read or the run record created
        """
        workflow = await self.database.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return await self.enqueue_workflow(workflow, source=source, trigger_data=trigger_data)

    async def enqueue_workflow(
        self,
        workflow: "Workflow",
        source: str = SOURCE_MANUAL,
        trigger_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create the run record, then queue a job for a snapshot of the workflow."""
        run = await self.database.create_run(workflow.id, workflow.user_id)
        job = await self.job_queue.enqueue(
            workflow_to_dict(workflow),
            run_id=run.id,
            source=source,
            trigger_data=trigger_data,
        )
        return {
            "job_id": job.id,
            "run_id": run.id,
            "workflow_id": workflow.id,
            "queue_position": job.position,
            "queue_length": len(self.job_queue),
        }

    # =========================================================================
    # RUN LIFECYCLE
    # =========================================================================

    async def run_job(self, job: Job) -> List[NodeResult]:
        """Drive one job's run from running to completed or failed.

        Raises whatever failed the run after marking it failed, so the queue
        records the job as failed with the same message.
        """
        with bind_run_context(job.run_id, job.workflow_id, job.id):
            return await self._run(job)

    async def _run(self, job: Job) -> List[NodeResult]:
        run_log = RunLog(job.run_id, self.database.append_run_log)
        start_time = time.time()

        try:
            await run_log.info(f"Started workflow execution: {job.workflow_name}",
                               data={"job_id": job.id, "source": job.source})
            results = await self.runner.execute(job.workflow, job.run_id,
                                                run_log=run_log, trigger_data=job.trigger_data)
            await run_log.info("Workflow execution completed successfully",
                               data={"nodes": len(results),
                                     "failed_nodes": sum(1 for r in results if not r.success)})
            await self.database.finalize_run(job.run_id, RunStatus.COMPLETED.value)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error("Workflow execution failed", error=error)
            await self._mark_failed(job, run_log, error)
            raise

        log_execution_time(logger, "workflow_run", start_time, time.time(), nodes=len(results))
        return results

    async def _mark_failed(self, job: Job, run_log: RunLog, error: str) -> None:
        try:
            await run_log.error(f"Workflow execution failed: {error}")
        except StorageError as log_error:
            logger.warning("Could not write failure to run log", error=str(log_error))
        try:
            await self.database.finalize_run(job.run_id, RunStatus.FAILED.value)
        except StorageError as finalize_error:
            logger.error("Failed to finalize run", error=str(finalize_error))

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def has_active(self, workflow_id: str) -> bool:
        return self.job_queue.has_active(workflow_id)

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.job_queue.status(job_id)

    async def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        run = await self.database.get_run(run_id)
        return run_to_dict(run) if run else None

    async def list_runs(self, workflow_id: Optional[str] = None, user_id: Optional[str] = None,
                        limit: int = 50) -> List[Dict[str, Any]]:
        runs = await self.database.list_runs(workflow_id=workflow_id, user_id=user_id, limit=limit)
        return [run_to_dict(run) for run in runs]

    def stats(self) -> Dict[str, Any]:
        return self.job_queue.stats()
