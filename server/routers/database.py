"""Database operations routes for workflow definitions."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from core.container import container
from core.database import Database
from core.logging import get_logger
from models.nodes import WorkflowSaveRequest
from services.workflow import workflow_to_dict

logger = get_logger(__name__)
router = APIRouter(prefix="/api/database", tags=["database"])


# ============================================================================
# Workflow Operations
# ============================================================================

@router.post("/workflows")
async def save_workflow(
    request: WorkflowSaveRequest,
    database: Database = Depends(lambda: container.database())
):
    """Save workflow to database (create when no id is given)."""
    workflow = await database.save_workflow(request.model_dump(exclude_none=True))
    return {"success": True, "workflow": workflow_to_dict(workflow)}


@router.get("/workflows")
async def get_all_workflows(
    user_id: Optional[str] = None,
    database: Database = Depends(lambda: container.database())
):
    """Get all workflows."""
    workflows = await database.list_workflows(user_id=user_id)
    return {
        "success": True,
        "workflows": [
            {
                "id": w.id,
                "name": w.name,
                "enabled": w.enabled,
                "nodeCount": len(w.nodes or []),
                "lastRunAt": w.last_run_at.isoformat() if w.last_run_at else None,
                "createdAt": w.created_at.isoformat() if w.created_at else None,
                "lastModified": w.updated_at.isoformat() if w.updated_at else None
            }
            for w in workflows
        ]
    }


@router.get("/workflows/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    database: Database = Depends(lambda: container.database())
):
    """Get workflow by ID."""
    workflow = await database.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return {"success": True, "workflow": workflow_to_dict(workflow)}


@router.delete("/workflows/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    database: Database = Depends(lambda: container.database())
):
    """Delete workflow and its runs."""
    if not await database.delete_workflow(workflow_id):
        raise HTTPException(status_code=404, detail="Workflow not found")
    return {"success": True, "workflow_id": workflow_id}
