"""Workflow execution routes: enqueue, job status and run records."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from constants import SOURCE_MANUAL
from core.container import container
from core.logging import get_logger
from services.workflow import WorkflowService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["workflow"])


@router.post("/workflows/{workflow_id}/execute")
async def execute_workflow(
    workflow_id: str,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Queue a run of a stored workflow.

    WorkflowNotFoundError (404) and StorageError (500) are mapped by the app's
    exception handlers.
    """
    queued = await workflow_service.enqueue_run(workflow_id, source=SOURCE_MANUAL)
    logger.info("Workflow execution requested", workflow_id=workflow_id,
                job_id=queued["job_id"], queue_position=queued["queue_position"])
    return {
        "success": True,
        "job_id": queued["job_id"],
        "run_id": queued["run_id"],
        "queue_position": queued["queue_position"],
        "message": "Workflow queued for execution",
    }


@router.get("/jobs/{job_id}/status")
async def get_job_status(
    job_id: str,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Queued position, executing marker or the terminal result of a job."""
    status = workflow_service.get_job_status(job_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return status


@router.get("/workflows/runs")
async def list_runs(
    workflow_id: Optional[str] = None,
    user_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Recent runs, newest first."""
    runs = await workflow_service.list_runs(workflow_id=workflow_id, user_id=user_id, limit=limit)
    return {"success": True, "runs": runs}


@router.get("/workflows/runs/{run_id}")
async def get_run(
    run_id: str,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Run with status, timestamps and its full log."""
    run = await workflow_service.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return {"success": True, "run": run}
