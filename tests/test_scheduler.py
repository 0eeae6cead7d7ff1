"""Tests for schedule due-ness and the scheduler sweep."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.database import Workflow
from models.nodes import WorkflowSnapshot
from services.execution import StorageError
from services.scheduler import WorkflowScheduler, interval_for, is_due

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _scheduled(interval="Every hour", last_run_at=None, workflow_id="wf-1", enabled=True):
    config = {"interval": interval} if interval is not None else {}
    return Workflow(
        id=workflow_id,
        name=f"Scheduled {workflow_id}",
        enabled=enabled,
        nodes=[{"id": "t", "kind": "trigger", "subtype": "schedule", "label": "Timer", "config": config}],
        connections=[],
        last_run_at=last_run_at,
    )


def _due(workflow, now=NOW):
    return is_due(WorkflowSnapshot.from_record(workflow), now)


class TestIsDue:

    def test_hourly_due_after_61_minutes(self):
        assert _due(_scheduled(last_run_at=NOW - timedelta(minutes=61)))

    def test_hourly_not_due_after_30_minutes(self):
        assert not _due(_scheduled(last_run_at=NOW - timedelta(minutes=30)))

    def test_never_run_is_due(self):
        assert _due(_scheduled(interval="Weekly"))

    def test_missing_interval_is_never_due(self):
        assert not _due(_scheduled(interval=None))

    def test_no_schedule_node_is_never_due(self):
        workflow = Workflow(id="wf", name="Manual", enabled=True,
                            nodes=[{"id": "a", "kind": "action", "subtype": "http", "config": {}}])
        assert not _due(workflow)

    def test_naive_last_run_is_treated_as_utc(self):
        naive = (NOW - timedelta(minutes=6)).replace(tzinfo=None)
        assert _due(_scheduled(interval="Every 5 minutes", last_run_at=naive))


@pytest.mark.parametrize("label,expected", [
    ("Every 5 minutes", timedelta(minutes=5)),
    ("Every hour", timedelta(hours=1)),
    ("Daily", timedelta(days=1)),
    ("Weekly", timedelta(weeks=1)),
    ("Every fortnight", timedelta(hours=1)),
    (["Daily"], timedelta(hours=1)),
    ({"every": "Daily"}, timedelta(hours=1)),
])
def test_interval_for(label, expected):
    assert interval_for(label) == expected


def _scheduler(workflows=None, active=False, error=None):
    database = MagicMock()
    database.list_enabled_workflows = AsyncMock(return_value=workflows or [], side_effect=error)
    service = MagicMock()
    service.has_active = MagicMock(return_value=active)
    service.enqueue_workflow = AsyncMock(side_effect=lambda wf, source: {"job_id": f"scheduled_{wf.id}"})
    return WorkflowScheduler(database, service, interval_seconds=60), service


class TestSweep:

    @pytest.mark.asyncio
    async def test_enqueues_only_due_workflows(self):
        due = _scheduled(workflow_id="due", last_run_at=NOW - timedelta(hours=2))
        fresh = _scheduled(workflow_id="fresh", last_run_at=NOW - timedelta(minutes=5))
        scheduler, service = _scheduler([due, fresh])

        enqueued = await scheduler.sweep(NOW)

        assert enqueued == ["due"]
        service.enqueue_workflow.assert_awaited_once_with(due, source="scheduler")

    @pytest.mark.asyncio
    async def test_skips_workflow_already_active(self):
        scheduler, service = _scheduler([_scheduled()], active=True)

        assert await scheduler.sweep(NOW) == []
        service.enqueue_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_skips_sweep(self):
        scheduler, service = _scheduler(error=StorageError("database is locked"))

        assert await scheduler.sweep(NOW) == []
        service.enqueue_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_workflow_is_skipped(self):
        broken = Workflow(id="broken", name="Broken", enabled=True,
                          nodes=[{"id": "x", "kind": "teleport"}])
        scheduler, service = _scheduler([broken, _scheduled(workflow_id="ok")])

        assert await scheduler.sweep(NOW) == ["ok"]

    @pytest.mark.asyncio
    async def test_non_string_interval_does_not_abort_sweep(self):
        odd = _scheduled(interval={"every": "Daily"}, workflow_id="odd")
        scheduler, service = _scheduler([odd, _scheduled(workflow_id="ok")])

        assert await scheduler.sweep(NOW) == ["odd", "ok"]

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_contained(self):
        scheduler, service = _scheduler([_scheduled(workflow_id="a"), _scheduled(workflow_id="b")])
        service.enqueue_workflow.side_effect = [StorageError("disk full"), {"job_id": "scheduled_b"}]

        assert await scheduler.sweep(NOW) == ["b"]


@pytest.mark.asyncio
async def test_sweep_runs_due_workflow_end_to_end(database, workflow_service, node):
    await database.save_workflow({
        "id": "wf-sched",
        "name": "Hourly ping",
        "enabled": True,
        "nodes": [node("t", "trigger", "schedule", "Timer", interval="Every hour")],
    })
    scheduler = WorkflowScheduler(database, workflow_service, interval_seconds=60)

    assert await scheduler.sweep() == ["wf-sched"]

    runs = await workflow_service.list_runs(workflow_id="wf-sched")
    assert len(runs) == 1
    for _ in range(200):
        if not workflow_service.has_active("wf-sched"):
            break
        await asyncio.sleep(0.02)

    workflow = await database.get_workflow("wf-sched")
    assert workflow.last_run_at is not None
    # Ran just now, so the next sweep leaves it alone
    assert await scheduler.sweep() == []


@pytest.mark.asyncio
async def test_start_schedules_sweep_and_shutdown_stops_it():
    scheduler, _ = _scheduler()
    assert scheduler.next_sweep_at() is None

    scheduler.start()
    try:
        assert scheduler.running is True
        assert scheduler.next_sweep_at() is not None
    finally:
        scheduler.shutdown()

    assert scheduler.running is False
    assert scheduler.next_sweep_at() is None
