"""
Interval Scheduler Service using APScheduler.
Periodically enqueues enabled workflows whose schedule trigger is due.
"""
from datetime import datetime, timezone, timedelta
from typing import List, Optional, TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from constants import DEFAULT_SCHEDULE_INTERVAL, SCHEDULE_INTERVALS, SCHEDULE_TRIGGER, SOURCE_SCHEDULER
from core.logging import get_logger
from models.nodes import WorkflowNode, WorkflowSnapshot
from services.execution import StorageError, WorkflowEngineError
from services.execution.models import as_utc

if TYPE_CHECKING:
    from core.database import Database
    from services.workflow import WorkflowService

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
SWEEP_JOB_ID = "workflow-due-sweep"


def interval_for(label: Optional[str]) -> timedelta:
    """Map a schedule label to its period; unknown labels mean one hour.

    Non-string labels also mean one hour.
    """
    if not isinstance(label, str):
        return DEFAULT_SCHEDULE_INTERVAL
    return SCHEDULE_INTERVALS.get(label, DEFAULT_SCHEDULE_INTERVAL)


def find_schedule_node(workflow: WorkflowSnapshot) -> Optional[WorkflowNode]:
    return workflow.find_node(*SCHEDULE_TRIGGER)


def is_due(workflow: WorkflowSnapshot, now: Optional[datetime] = None) -> bool:
    """True when the schedule node's interval has elapsed since the last run.

    A workflow never run counts as last run at the epoch. Workflows without a
    schedule node, or whose schedule node has no interval, are never due.
    """
    node = find_schedule_node(workflow)
    if node is None:
        return False
    label = node.config.get("interval")
    if not label:
        return False

    now = now or datetime.now(timezone.utc)
    last_run_at = as_utc(workflow.last_run_at) or EPOCH
    return now - last_run_at >= interval_for(label)


class WorkflowScheduler:
    """Owns the AsyncIOScheduler that fires the due-ness sweep."""

    def __init__(self, database: "Database", workflow_service: "WorkflowService",
                 interval_seconds: int = 60):
        self.database = database
        self.workflow_service = workflow_service
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self) -> None:
        """Start the scheduler with an immediate first sweep."""
        if self.running:
            logger.warning("[Scheduler] Already running")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone="UTC"),
            id=SWEEP_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("[Scheduler] Started", interval_seconds=self.interval_seconds)

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[Scheduler] Shutdown")
        self._scheduler = None

    def next_sweep_at(self) -> Optional[str]:
        if not self.running:
            return None
        job = self._scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time.isoformat() if job and job.next_run_time else None

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Enqueue every due workflow; returns the ids enqueued.

        Storage read failures skip the whole sweep; other failures skip only
        the affected workflow.
        """
        now = now or datetime.now(timezone.utc)
        try:
            workflows = await self.database.list_enabled_workflows()
        except StorageError as e:
            logger.error("[Scheduler] Could not read workflows, skipping sweep", error=str(e))
            return []

        enqueued: List[str] = []
        for workflow in workflows:
            try:
                snapshot = WorkflowSnapshot.from_record(workflow)
            except ValidationError as e:
                logger.warning("[Scheduler] Skipping malformed workflow",
                               workflow_id=workflow.id, error=str(e))
                continue

            if not is_due(snapshot, now):
                continue

            if self.workflow_service.has_active(workflow.id):
                logger.debug("[Scheduler] Workflow already queued or executing", workflow_id=workflow.id)
                continue

            try:
                queued = await self.workflow_service.enqueue_workflow(workflow, source=SOURCE_SCHEDULER)
            except WorkflowEngineError as e:
                logger.error("[Scheduler] Failed to enqueue workflow", workflow_id=workflow.id, error=str(e))
                continue

            logger.info("[Scheduler] Workflow enqueued", workflow_id=workflow.id,
                        name=workflow.name, job_id=queued["job_id"])
            enqueued.append(workflow.id)

        if enqueued:
            logger.info("[Scheduler] Sweep complete", enqueued=len(enqueued), checked=len(workflows))
        return enqueued
