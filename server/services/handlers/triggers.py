"""Trigger node handlers - schedule and webhook acknowledgements.

The decision to start a run is made upstream (scheduler sweep or webhook
receipt); inside a run a trigger node only acknowledges that it fired.
"""

from typing import Dict, Any

from core.logging import get_logger
from models.nodes import ScheduleTriggerParams, WebhookTriggerParams
from services.execution.models import RunContext

logger = get_logger(__name__)


async def handle_schedule_trigger(
    node_id: str,
    params: ScheduleTriggerParams,
    context: RunContext,
) -> Dict[str, Any]:
    logger.debug("Schedule trigger processed", node_id=node_id, interval=params.interval)
    return {
        "success": True,
        "message": f"Schedule trigger processed: {params.interval}",
        "interval": params.interval,
    }


async def handle_webhook_trigger(
    node_id: str,
    params: WebhookTriggerParams,
    context: RunContext,
) -> Dict[str, Any]:
    """Acknowledge the webhook and expose its payload as this node's output."""
    logger.debug("Webhook trigger processed", node_id=node_id,
                 has_payload=context.trigger_data is not None)
    return {
        "success": True,
        "message": "Webhook trigger processed",
        "data": context.trigger_data or {},
    }
