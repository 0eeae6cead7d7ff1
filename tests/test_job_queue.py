"""Tests for the FIFO job queue and its single consumer."""

import asyncio
import time
from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.cleanup import CleanupService
from core.config import Settings
from services.execution import JobQueue, JobStatus, NodeResult
from services.execution.models import utc_now


async def _wait_finished(queue: JobQueue, job_id: str, timeout: float = 5.0):
    for _ in range(int(timeout / 0.01)):
        status = queue.status(job_id)
        if status and status["status"] in ("completed", "failed"):
            return status
        await asyncio.sleep(0.01)
    raise AssertionError(f"Job {job_id} never finished")


@pytest.mark.asyncio
async def test_positions_and_fifo_order():
    queue = JobQueue()
    jobs = [await queue.enqueue({"id": f"wf-{i}"}, run_id=f"run-{i}") for i in range(3)]

    assert [j.position for j in jobs] == [1, 2, 3]
    assert queue.status(jobs[2].id) == {
        "job_id": jobs[2].id, "status": "queued", "queue_position": 3, "queue_length": 3,
    }

    first = await queue.dequeue()
    assert first is jobs[0]
    assert first.status == JobStatus.EXECUTING
    assert queue.status(jobs[1].id)["queue_position"] == 1
    assert queue.status(first.id) == {
        "job_id": first.id, "status": "executing", "message": "Workflow is currently executing",
    }


@pytest.mark.asyncio
async def test_enqueue_snapshots_workflow():
    queue = JobQueue()
    workflow = {"id": "wf", "nodes": [{"id": "a"}]}
    job = await queue.enqueue(workflow, run_id="run-1")

    workflow["nodes"].append({"id": "b"})

    assert job.workflow == {"id": "wf", "nodes": [{"id": "a"}]}


@pytest.mark.asyncio
async def test_scheduler_jobs_use_scheduled_prefix():
    queue = JobQueue()
    manual = await queue.enqueue({"id": "wf"}, run_id="r1")
    scheduled = await queue.enqueue({"id": "wf"}, run_id="r2", source="scheduler")

    assert manual.id.startswith("job_")
    assert scheduled.id.startswith("scheduled_")


@pytest.mark.asyncio
async def test_consumer_runs_one_job_at_a_time():
    queue = JobQueue()
    active = 0
    peak = 0
    order = []

    async def handler(job):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        order.append(job.workflow_id)
        active -= 1
        return [NodeResult(node_id="n", label="n", kind="action", subtype="x",
                           duration=1, success=True, result={"ok": True})]

    jobs = [await queue.enqueue({"id": f"wf-{i}"}, run_id=f"run-{i}") for i in range(3)]
    await queue.start(handler)
    try:
        results = [await _wait_finished(queue, job.id) for job in jobs]
    finally:
        await queue.stop()

    assert peak == 1
    assert order == ["wf-0", "wf-1", "wf-2"]
    assert all(r["status"] == "completed" and r["success"] for r in results)
    assert results[0]["results"][0]["result"] == {"ok": True}


@pytest.mark.asyncio
async def test_handler_exception_fails_job():
    queue = JobQueue()

    async def handler(job):
        raise RuntimeError("storage went away")

    job = await queue.enqueue({"id": "wf"}, run_id="run-1")
    await queue.start(handler)
    try:
        result = await _wait_finished(queue, job.id)
    finally:
        await queue.stop()

    assert result["status"] == "failed"
    assert result["success"] is False
    assert result["error"] == "storage went away"
    assert "results" not in result


@pytest.mark.asyncio
async def test_terminal_status_is_stable_until_evicted():
    queue = JobQueue(result_retention=60)
    job = await queue.enqueue({"id": "wf"}, run_id="run-1")
    await queue.dequeue()
    await queue.complete(job, [])

    first = queue.status(job.id)
    assert queue.status(job.id) is first
    assert queue.evict_expired() == 0

    assert queue.evict_expired(now=utc_now() + timedelta(seconds=61)) == 1
    assert queue.status(job.id) is None


@pytest.mark.asyncio
async def test_has_active_and_stats():
    queue = JobQueue()
    job = await queue.enqueue({"id": "wf-a"}, run_id="run-1")

    assert queue.has_active("wf-a")
    assert not queue.has_active("wf-b")

    await queue.dequeue()
    assert queue.has_active("wf-a")
    assert queue.stats() == {"queue_length": 0, "executing_jobs": 1, "active_results": 0, "running": False}

    await queue.fail(job, "boom")
    assert not queue.has_active("wf-a")
    assert queue.stats()["active_results"] == 1


def test_unknown_job_status_is_none():
    assert JobQueue().status("job_missing") is None


@pytest.mark.asyncio
async def test_cleanup_evicts_expired_results(settings):
    queue = JobQueue(result_retention=0)
    job = await queue.enqueue({"id": "wf"}, run_id="run-1")
    await queue.dequeue()
    await queue.complete(job, [])
    job.completed_at -= timedelta(seconds=1)

    assert await CleanupService(queue, settings).run_once() == {"expired_results": 1}
    assert queue.status(job.id) is None


@pytest.mark.asyncio
async def test_successive_jobs_start_at_least_one_second_apart():
    queue = JobQueue(idle_gap=0)
    started = []

    async def handler(job):
        started.append(time.monotonic())
        return []

    jobs = [await queue.enqueue({"id": f"wf-{i}"}, run_id=f"run-{i}") for i in range(2)]
    await queue.start(handler)
    try:
        for job in jobs:
            await _wait_finished(queue, job.id)
    finally:
        await queue.stop()

    assert queue.idle_gap == 1.0
    assert started[1] - started[0] >= 1.0


def test_idle_gap_setting_rejects_values_below_one_second():
    with pytest.raises(ValidationError):
        Settings(queue_idle_gap=0.0)
    assert Settings(queue_idle_gap=2.5).queue_idle_gap == 2.5
