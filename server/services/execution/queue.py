"""In-process FIFO job queue with a single consumer.

At most one job is executing at any time. The consumer dequeues the head
job, drives it to a terminal status through the handler it was started
with, then waits `idle_gap` seconds (never less than MIN_IDLE_GAP) before
taking the next one.

Terminal results are kept for `result_retention` seconds so status lookups
keep returning the same object; `evict_expired()` drops older ones.
"""

import asyncio
import copy
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, Any, List, Optional, Callable, Awaitable, Tuple, Union

from constants import SOURCE_MANUAL
from core.logging import get_logger
from .models import Job, JobStatus, NodeResult, utc_now

logger = get_logger(__name__)

# Floor on the pause between successive dequeues
MIN_IDLE_GAP = 1.0

JobHandler = Callable[[Job], Awaitable[List[Union[NodeResult, Dict[str, Any]]]]]


class JobQueue:
    """FIFO of pending jobs plus tracking of the executing and finished ones."""

    def __init__(self, idle_gap: float = 1.0, result_retention: int = 3600):
        """
        Args:
            idle_gap: Seconds the consumer sleeps after each job, clamped to
                      at least MIN_IDLE_GAP
            result_retention: Seconds a terminal result stays queryable
        """
        self.idle_gap = max(idle_gap, MIN_IDLE_GAP)
        self.result_retention = result_retention

        self._pending: Deque[Job] = deque()
        self._executing: Dict[str, Job] = {}
        self._finished: Dict[str, Tuple[Job, Dict[str, Any]]] = {}

        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._handler: Optional[JobHandler] = None

    # =========================================================================
    # QUEUE OPERATIONS
    # =========================================================================

    async def enqueue(self, workflow: Dict[str, Any], run_id: str,
                      source: str = SOURCE_MANUAL,
                      trigger_data: Optional[Dict[str, Any]] = None) -> Job:
        """Append a job for a deep copy of the workflow; never blocks, never rejects."""
        snapshot = copy.deepcopy(workflow)
        async with self._lock:
            job = Job.create(snapshot, run_id, position=len(self._pending) + 1,
                             source=source, trigger_data=copy.deepcopy(trigger_data))
            self._pending.append(job)
            queue_length = len(self._pending)
        self._wakeup.set()

        logger.info("Job queued", job_id=job.id, run_id=run_id, workflow_id=job.workflow_id,
                    source=source, position=job.position, queue_length=queue_length)
        return job

    async def dequeue(self) -> Optional[Job]:
        """Remove the head job and mark it executing; None when empty."""
        async with self._lock:
            if not self._pending:
                return None
            job = self._pending.popleft()
            job.status = JobStatus.EXECUTING
            job.started_at = utc_now()
            self._executing[job.id] = job
        logger.info("Job dequeued", job_id=job.id, workflow_id=job.workflow_id,
                    remaining=len(self._pending))
        return job

    async def complete(self, job: Job, results: List[Union[NodeResult, Dict[str, Any]]]) -> Dict[str, Any]:
        node_results = [r.to_dict() if isinstance(r, NodeResult) else r for r in results]
        return await self._finish(job, JobStatus.COMPLETED, results=node_results)

    async def fail(self, job: Job, error: str) -> Dict[str, Any]:
        return await self._finish(job, JobStatus.FAILED, error=error)

    async def _finish(self, job: Job, status: JobStatus,
                      results: Optional[List[Dict[str, Any]]] = None,
                      error: Optional[str] = None) -> Dict[str, Any]:
        async with self._lock:
            job.status = status
            job.completed_at = utc_now()
            result = job.terminal_result(results=results, error=error)
            self._executing.pop(job.id, None)
            self._finished[job.id] = (job, result)
        logger.info("Job finished", job_id=job.id, workflow_id=job.workflow_id,
                    status=status.value, duration_ms=job.duration)
        return result

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Queued position, executing marker, stored terminal result, or None."""
        for index, job in enumerate(self._pending):
            if job.id == job_id:
                return {
                    "job_id": job.id,
                    "status": JobStatus.QUEUED.value,
                    "queue_position": index + 1,
                    "queue_length": len(self._pending),
                }

        if job_id in self._executing:
            return {
                "job_id": job_id,
                "status": JobStatus.EXECUTING.value,
                "message": "Workflow is currently executing",
            }

        finished = self._finished.get(job_id)
        if finished:
            return finished[1]
        return None

    def has_active(self, workflow_id: str) -> bool:
        """True if a job for the workflow is queued or executing."""
        if any(job.workflow_id == workflow_id for job in self._pending):
            return True
        return any(job.workflow_id == workflow_id for job in self._executing.values())

    def evict_expired(self, now=None) -> int:
        """Drop terminal results older than the retention window."""
        now = now or utc_now()
        cutoff = now - timedelta(seconds=self.result_retention)
        expired = [job_id for job_id, (job, _) in self._finished.items()
                   if job.completed_at and job.completed_at < cutoff]
        for job_id in expired:
            del self._finished[job_id]
        if expired:
            logger.info("Evicted expired job results", count=len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        return {
            "queue_length": len(self._pending),
            "executing_jobs": len(self._executing),
            "active_results": len(self._finished),
            "running": self._running,
        }

    def __len__(self) -> int:
        return len(self._pending)

    # =========================================================================
    # CONSUMER LOOP
    # =========================================================================

    async def start(self, handler: JobHandler) -> None:
        """Start the single consumer task."""
        if self._running:
            logger.warning("Job queue consumer already running")
            return

        self._handler = handler
        self._running = True
        self._task = asyncio.create_task(self._worker_loop())
        logger.info("Job queue consumer started", idle_gap=self.idle_gap)

    async def stop(self) -> None:
        """Stop the consumer; a job in progress is cancelled."""
        self._running = False
        self._wakeup.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Job queue consumer stopped", pending=len(self._pending))

    async def _worker_loop(self) -> None:
        """Main consumer loop - one job at a time."""
        while self._running:
            self._wakeup.clear()
            job = await self.dequeue()
            if job is None:
                await self._wakeup.wait()
                continue

            await self._process(job)

            # Idle gap before the next dequeue
            await asyncio.sleep(self.idle_gap)

    async def _process(self, job: Job) -> None:
        try:
            results = await self._handler(job)
        except Exception as e:
            logger.error("Job failed", job_id=job.id, workflow_id=job.workflow_id, error=str(e))
            await self.fail(job, str(e) or type(e).__name__)
        else:
            await self.complete(job, results)
