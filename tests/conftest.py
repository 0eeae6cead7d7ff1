"""
Shared fixtures for the workflow engine tests.

Storage runs on a temporary SQLite file per test; connector latencies are
zeroed so runs finish quickly. The queue keeps its one-second idle gap.
"""

import asyncio
import os
import time
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio

# Keep main.py's module-level Settings() off the real data directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from core.config import Settings
from core.database import Database
from services.execution import JobQueue, RunLog, RunContext, RunStateMachine
from services.node_executor import NodeExecutor
from services.workflow import WorkflowService


def make_node(node_id: str, kind: str, subtype: str, label: Optional[str] = None,
              **config: Any) -> Dict[str, Any]:
    """Node dict in the stored workflow shape."""
    return {
        "id": node_id,
        "kind": kind,
        "subtype": subtype,
        "label": label if label is not None else node_id,
        "config": config,
    }


async def wait_for_terminal(service: WorkflowService, job_id: str, timeout: float = 10.0) -> Dict[str, Any]:
    """Poll job status until it is completed or failed."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = service.get_job_status(job_id)
        if status and status["status"] in ("completed", "failed"):
            return status
        await asyncio.sleep(0.02)
    raise AssertionError(f"Job {job_id} did not finish within {timeout}s")


@pytest.fixture
def node():
    return make_node


@pytest.fixture
def wait_terminal():
    return wait_for_terminal


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        slack_simulated_latency=0.0,
        data_store_simulated_latency=0.0,
        scheduler_enabled=False,
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def node_executor(settings):
    return NodeExecutor(settings)


@pytest.fixture
def job_queue(settings):
    return JobQueue(idle_gap=settings.queue_idle_gap, result_retention=settings.job_result_retention)


@pytest.fixture
def runner(node_executor, database):
    return RunStateMachine(node_executor, database.append_run_log)


@pytest_asyncio.fixture
async def workflow_service(database, job_queue, runner, settings):
    service = WorkflowService(database=database, job_queue=job_queue, runner=runner, settings=settings)
    await service.start()
    yield service
    await service.stop()


@pytest.fixture
def run_context():
    """In-memory run context whose log is not persisted."""
    def factory(trigger_data: Optional[Dict[str, Any]] = None) -> RunContext:
        return RunContext(run_id="run-test", workflow_id="wf-test",
                          log=RunLog("run-test"), trigger_data=trigger_data)
    return factory
