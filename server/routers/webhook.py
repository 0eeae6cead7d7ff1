"""Webhook endpoint router for incoming HTTP requests.

A request to /webhook/{workflow_id} queues a run of that workflow with the
request as trigger data; webhook trigger nodes expose it as their output.
"""
import json

from fastapi import APIRouter, Depends, HTTPException, Request

from constants import SOURCE_WEBHOOK
from core.container import container
from core.logging import get_logger
from services.execution import WorkflowNotFoundError
from services.workflow import WorkflowService

logger = get_logger(__name__)
router = APIRouter(prefix="/webhook", tags=["webhook"])


async def _webhook_data(request: Request) -> dict:
    body = await request.body()
    json_body = None
    if "application/json" in request.headers.get("content-type", "") and body:
        try:
            json_body = json.loads(body)
        except ValueError:
            logger.warning("[Webhook] Invalid JSON body", path=request.url.path)

    return {
        "method": request.method,
        "headers": dict(request.headers),
        "query": dict(request.query_params),
        "body": body.decode("utf-8", errors="replace"),
        "json": json_body,
    }


@router.post("/{workflow_id}")
async def handle_webhook(
    workflow_id: str,
    request: Request,
    workflow_service: WorkflowService = Depends(lambda: container.workflow_service())
):
    """Queue a run of an enabled workflow with the request as trigger data."""
    workflow = await workflow_service.database.get_workflow(workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)
    if not workflow.enabled:
        raise HTTPException(status_code=409, detail="Workflow is disabled")

    webhook_data = await _webhook_data(request)
    logger.info("[Webhook] Received", workflow_id=workflow_id, method=request.method)

    queued = await workflow_service.enqueue_workflow(
        workflow, source=SOURCE_WEBHOOK, trigger_data=webhook_data
    )
    return {
        "status": "received",
        "job_id": queued["job_id"],
        "run_id": queued["run_id"],
        "queue_position": queued["queue_position"],
        "message": "Webhook received and workflow queued",
    }


@router.get("/")
async def list_info():
    """Get webhook endpoint info."""
    return {
        "endpoint": "/webhook/{workflow_id}",
        "description": "POST to queue a run of an enabled workflow",
        "usage": "The request method, headers, query and body are available as {{trigger.*}}",
        "example": "POST /webhook/<workflow-id> with JSON body"
    }
