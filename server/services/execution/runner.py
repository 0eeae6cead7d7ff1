"""Run state machine - sequential interpreter over a workflow's node list.

States: running -> completed | failed.

Nodes run in array order; connections are not consulted. A node failure is
recorded as a failed NodeResult and the run continues with the next node.
Two things escape `execute` and fail the whole run:
- a workflow snapshot that does not parse (WorkflowEngineError)
- a run log write that fails
"""

import time
from typing import Dict, Any, List, Optional, Callable, Awaitable, Union, TYPE_CHECKING

from pydantic import ValidationError

from core.logging import get_logger
from models.nodes import WorkflowSnapshot, WorkflowNode
from .exceptions import StorageError, WorkflowEngineError
from .models import NodeResult, RunContext, RunLog

if TYPE_CHECKING:
    from services.node_executor import NodeExecutor

logger = get_logger(__name__)

AppendLogFn = Callable[[str, Dict[str, Any]], Awaitable[None]]


class RunStateMachine:
    """Walks a workflow snapshot node by node, producing ordered NodeResults."""

    def __init__(self, node_executor: "NodeExecutor", append_log: Optional[AppendLogFn] = None):
        """
        Args:
            node_executor: Dispatches one node to its handler
            append_log: Async function persisting one log entry
                        Signature: async def (run_id, entry_dict) -> None
        """
        self.node_executor = node_executor
        self.append_log = append_log

    async def execute(
        self,
        workflow: Union[WorkflowSnapshot, Dict[str, Any]],
        run_id: str,
        run_log: Optional[RunLog] = None,
        trigger_data: Optional[Dict[str, Any]] = None,
    ) -> List[NodeResult]:
        """Execute every node of the workflow in order.

        Raises:
            WorkflowEngineError: The workflow snapshot is malformed
            StorageError: A run log entry could not be written
        """
        snapshot = self._parse_snapshot(workflow)

        log = run_log or RunLog(run_id, self.append_log)
        context = RunContext(
            run_id=run_id,
            workflow_id=snapshot.id,
            log=log,
            trigger_data=trigger_data,
        )

        logger.info("Run started", run_id=run_id, workflow_id=snapshot.id,
                    node_count=len(snapshot.nodes))

        results: List[NodeResult] = []
        for node in snapshot.nodes:
            results.append(await self._execute_node(node, context))

        failed = sum(1 for r in results if not r.success)
        logger.info("Run finished", run_id=run_id, workflow_id=snapshot.id,
                    nodes=len(results), failed_nodes=failed)
        return results

    async def _execute_node(self, node: WorkflowNode, context: RunContext) -> NodeResult:
        label = node.display_label
        await context.log.info(f"Starting execution of node: {label}", node.id)

        start = time.perf_counter()
        try:
            payload = await self.node_executor.run(node, context)
        except StorageError:
            raise
        except Exception as e:
            duration = self._elapsed_ms(start)
            error = str(e) or type(e).__name__
            logger.warning("Node failed", run_id=context.run_id, node_id=node.id,
                           kind=node.kind, subtype=node.subtype, error=error, duration_ms=duration)
            context.record_failure(node.id, error)
            await context.log.error(f"Node failed in {duration}ms: {error}", node.id,
                                    {"error": error, "duration": duration})
            return NodeResult(node_id=node.id, label=label, kind=node.kind, subtype=node.subtype,
                              duration=duration, success=False, error=error)

        duration = self._elapsed_ms(start)
        context.record_success(node.id, node.label, payload)
        await context.log.info(f"Node completed successfully in {duration}ms", node.id,
                               {"result": payload, "duration": duration})
        return NodeResult(node_id=node.id, label=label, kind=node.kind, subtype=node.subtype,
                          duration=duration, success=True, result=payload)

    @staticmethod
    def _parse_snapshot(workflow: Union[WorkflowSnapshot, Dict[str, Any]]) -> WorkflowSnapshot:
        if isinstance(workflow, WorkflowSnapshot):
            return workflow
        try:
            return WorkflowSnapshot.model_validate(workflow)
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ()))
            raise WorkflowEngineError(f"Malformed workflow data at {where}: {first.get('msg')}") from e

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return max(0, int((time.perf_counter() - start) * 1000))
