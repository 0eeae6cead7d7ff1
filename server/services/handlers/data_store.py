"""Database node handler - data-store connector (simulated)."""

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging import get_logger, log_connector_call
from models.nodes import DatabaseOperationParams
from services.execution.models import RunContext

logger = get_logger(__name__)


async def handle_database_operation(
    node_id: str,
    params: DatabaseOperationParams,
    context: RunContext,
    simulated_latency: float = 0.8,
) -> Dict[str, Any]:
    """Simulate an Insert/Update/Delete/Select against a table."""
    logger.info("[Database] Executing operation", node_id=node_id, run_id=context.run_id,
                operation=params.operation, table=params.table, query=params.query)

    await asyncio.sleep(simulated_latency)

    rows_affected = random.randint(1, 5)
    log_connector_call(logger, "database", node_id, True, simulated=True,
                       operation=params.operation, rows_affected=rows_affected)
    return {
        "success": True,
        "operation": params.operation,
        "table": params.table,
        "query": params.query,
        "rowsAffected": rows_affected,
        "simulated": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
