"""Logic node handlers - conditional, delay, error-handler, transform.

All four run in-process. Only the delay handler suspends, and while it
sleeps it keeps holding the single execution slot.
"""

import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict

from constants import ERROR_HANDLER_ACTIONS, TRANSFORM_OUTPUT_FIELDS
from core.logging import get_logger
from models.nodes import ConditionalParams, DelayParams, ErrorHandlerParams, TransformParams
from services.execution.conditions import as_text, evaluate, get_nested_value
from services.execution.exceptions import NodeConfigError
from services.execution.models import RunContext

logger = get_logger(__name__)

# {field} or {field.nested} placeholders used by Format String
FORMAT_PLACEHOLDER = re.compile(r'\{([A-Za-z_][\w]*(?:\.[\w]+)*)\}')


async def handle_conditional(
    node_id: str,
    params: ConditionalParams,
    context: RunContext,
) -> Dict[str, Any]:
    """Evaluate `operand1 <operator> operand2`."""
    condition = f"{as_text(params.operand1)} {params.operator} {as_text(params.operand2)}"
    result = evaluate(params.operand1, params.operator, params.operand2)
    logger.info("Condition result", node_id=node_id, condition=condition, result=result)
    return {
        "success": True,
        "result": result,
        "message": f"Condition evaluated: {as_text(result)}",
        "condition": condition,
    }


async def handle_delay(
    node_id: str,
    params: DelayParams,
    context: RunContext,
) -> Dict[str, Any]:
    """Suspend the run for `duration` x `unit`."""
    seconds = params.seconds
    duration_text = f"{as_text(params.duration)} {params.unit}"
    logger.info("Delaying execution", node_id=node_id, run_id=context.run_id,
                duration=duration_text)

    await asyncio.sleep(seconds)

    return {
        "success": True,
        "message": f"Delayed execution for {duration_text}",
        "duration": int(seconds * 1000),
    }


async def handle_error_handler(
    node_id: str,
    params: ErrorHandlerParams,
    context: RunContext,
) -> Dict[str, Any]:
    """Bookkeeping action; never alters control flow of the run.

    "Stop Workflow" is recorded but does not halt the run.
    """
    last_error = context.last_error or {}
    fields = {"node_id": node_id, "run_id": context.run_id, "message": params.message,
              "last_error": last_error.get("message")}

    if params.action == "Log Error":
        logger.error("Error logged", **fields)
    elif params.action == "Send Notification":
        logger.info("Notification sent", **fields)
    elif params.action == "Retry":
        logger.info("Retry requested", retry_count=params.retry_count, **fields)
    elif params.action == "Stop Workflow":
        logger.warning("Workflow stop requested", **fields)
    else:
        logger.warning("Unknown error action", action=params.action,
                       known_actions=list(ERROR_HANDLER_ACTIONS), **fields)

    return {
        "success": True,
        "action": params.action,
        "message": params.message,
        "retryCount": params.retry_count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _transform_input(params: TransformParams, context: RunContext) -> Any:
    if params.source_node:
        return context.output_of(params.source_node)
    return context.previous_output()


def _format_string(template: str, data: Any) -> str:
    def fill(match: "re.Match") -> str:
        value = get_nested_value(data, match.group(1))
        return match.group(0) if value is None else as_text(value)
    return FORMAT_PLACEHOLDER.sub(fill, template)


def _apply_transform(params: TransformParams, data: Any) -> Any:
    kind = params.transformation_type

    if kind == "JSON Parse":
        value = get_nested_value(data, params.input_field) if params.input_field else data
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Data transformation failed: invalid JSON ({e.msg})") from e

    if kind == "JSON Stringify":
        value = get_nested_value(data, params.input_field) if params.input_field else data
        return json.dumps(value, default=str)

    if kind == "Extract Field":
        if not params.input_field:
            raise NodeConfigError("inputField is required for Extract Field")
        return get_nested_value(data, params.input_field)

    if kind == "Format String":
        if params.template is None:
            raise NodeConfigError("template is required for Format String")
        return _format_string(params.template, data)

    # Custom Script: scripts are never executed
    return "script executed"


async def handle_transform(
    node_id: str,
    params: TransformParams,
    context: RunContext,
) -> Dict[str, Any]:
    """Transform the previous node's output (or `sourceNode`'s) into one named field."""
    kind = params.transformation_type
    logger.info("Transforming data", node_id=node_id, transformation_type=kind,
                source_node=params.source_node)

    payload: Dict[str, Any] = {"success": True}
    if kind in TRANSFORM_OUTPUT_FIELDS:
        output_field = params.output_field or TRANSFORM_OUTPUT_FIELDS[kind]
        value = _apply_transform(params, _transform_input(params, context))
        transformed = {output_field: value}
        if kind == "Custom Script":
            payload["simulated"] = True
    else:
        transformed = {"transformed": True}

    payload.update({
        "data": transformed,
        "message": f"Data transformed using {kind}",
        "transformationType": kind,
    })
    return payload
