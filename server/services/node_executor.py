"""Node Executor - Single node execution with handler dispatch.

Uses a registry keyed by (kind, subtype) for handler dispatch without
if-else chains. New connectors are added with `register()`.
"""

from functools import partial
from typing import Dict, Any, Callable, Awaitable, NamedTuple, Optional, Tuple, Type, TYPE_CHECKING

from pydantic import ValidationError

from constants import KIND_ACTION, KIND_LOGIC, KIND_TRIGGER
from core.logging import get_logger
from models.nodes import (
    BaseNodeParams,
    ConditionalParams,
    DatabaseOperationParams,
    DelayParams,
    ErrorHandlerParams,
    HttpRequestParams,
    ScheduleTriggerParams,
    SlackMessageParams,
    TransformParams,
    WebhookTriggerParams,
    WorkflowNode,
    format_validation_error,
)
from services.execution.exceptions import NodeConfigError
from services.execution.models import RunContext
from services.handlers import (
    handle_http_request, handle_slack_message, handle_database_operation,
    handle_conditional, handle_delay, handle_error_handler, handle_transform,
    handle_schedule_trigger, handle_webhook_trigger,
)
from services.parameter_resolver import ParameterResolver

if TYPE_CHECKING:
    from core.config import Settings

logger = get_logger(__name__)

Handler = Callable[..., Awaitable[Dict[str, Any]]]


class HandlerEntry(NamedTuple):
    handler: Handler
    params_model: Type[BaseNodeParams]


class NodeExecutor:
    """Executes individual workflow nodes using registry-based dispatch."""

    def __init__(self, settings: "Settings", resolver: Optional[ParameterResolver] = None):
        self.settings = settings
        self.resolver = resolver or ParameterResolver()
        self._handlers: Dict[Tuple[str, str], HandlerEntry] = self._build_handler_registry()

    def _build_handler_registry(self) -> Dict[Tuple[str, str], HandlerEntry]:
        """Build handler registry with settings bound via partial."""
        s = self.settings
        return {
            # Connectors
            (KIND_ACTION, 'http'): HandlerEntry(
                partial(handle_http_request, timeout=s.http_timeout, user_agent=s.http_user_agent),
                HttpRequestParams),
            (KIND_ACTION, 'slack'): HandlerEntry(
                partial(handle_slack_message, bot_token=s.slack_bot_token, api_url=s.slack_api_url,
                        timeout=s.http_timeout, simulated_latency=s.slack_simulated_latency),
                SlackMessageParams),
            (KIND_ACTION, 'database'): HandlerEntry(
                partial(handle_database_operation, simulated_latency=s.data_store_simulated_latency),
                DatabaseOperationParams),
            # Triggers
            (KIND_TRIGGER, 'schedule'): HandlerEntry(handle_schedule_trigger, ScheduleTriggerParams),
            (KIND_TRIGGER, 'webhook'): HandlerEntry(handle_webhook_trigger, WebhookTriggerParams),
            # Logic
            (KIND_LOGIC, 'conditional'): HandlerEntry(handle_conditional, ConditionalParams),
            (KIND_LOGIC, 'delay'): HandlerEntry(handle_delay, DelayParams),
            (KIND_LOGIC, 'error-handler'): HandlerEntry(handle_error_handler, ErrorHandlerParams),
            (KIND_LOGIC, 'transform'): HandlerEntry(handle_transform, TransformParams),
        }

    def register(self, kind: str, subtype: str, handler: Handler,
                 params_model: Type[BaseNodeParams] = BaseNodeParams) -> None:
        """Add or replace the handler for (kind, subtype)."""
        self._handlers[(kind, subtype)] = HandlerEntry(handler, params_model)
        logger.debug("Handler registered", kind=kind, subtype=subtype)

    def is_registered(self, kind: str, subtype: str) -> bool:
        return (kind, subtype) in self._handlers

    async def run(self, node: WorkflowNode, context: RunContext) -> Dict[str, Any]:
        """Execute a single workflow node.

        Resolves templates, logs the dispatch, validates the config into the
        subtype's parameter model and calls the handler.

        Raises:
            NodeConfigError: Config does not validate
            ConnectorError: The external side effect failed
            StorageError: The run log could not be written
        """
        config = self.resolver.resolve(node.config, context.template_data())

        await context.log.info(self._dispatch_message(node), node.id, {"config": config})

        entry = self._handlers.get((node.kind, node.subtype))
        if entry is None:
            logger.info("No handler registered, simulating node",
                        node_id=node.id, kind=node.kind, subtype=node.subtype)
            return self._simulated(node)

        try:
            params = entry.params_model.model_validate(config)
        except ValidationError as e:
            raise NodeConfigError(format_validation_error(e)) from e

        result = await entry.handler(node.id, params, context)
        if not isinstance(result, dict):
            result = {"success": True, "value": result}
        result.setdefault("success", True)
        return result

    @staticmethod
    def _dispatch_message(node: WorkflowNode) -> str:
        if node.kind == KIND_TRIGGER:
            return f"Processing {node.subtype} trigger"
        if node.kind == KIND_LOGIC:
            return f"Executing {node.subtype} logic node"
        return f"Executing {node.subtype} action"

    @staticmethod
    def _simulated(node: WorkflowNode) -> Dict[str, Any]:
        suffix = "logic node" if node.kind == KIND_LOGIC else node.kind
        return {
            "success": True,
            "simulated": True,
            "message": f"Simulated {node.subtype} {suffix}",
        }
