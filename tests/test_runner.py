"""Tests for the sequential run state machine."""

from unittest.mock import AsyncMock

import pytest

from services.execution import RunLog, RunStateMachine, StorageError, WorkflowEngineError


def _workflow(*nodes):
    return {"id": "wf-1", "name": "Test", "nodes": list(nodes), "connections": []}


@pytest.mark.asyncio
async def test_results_in_node_order(node_executor, node):
    runner = RunStateMachine(node_executor)
    workflow = _workflow(
        node("t", "trigger", "schedule", "Every hour", interval="Every hour"),
        node("c", "logic", "conditional", "Check", operand1="5", operator="greater_than", operand2="3"),
        node("x", "action", "gmail", "Mail"),
    )

    results = await runner.execute(workflow, "run-1")

    assert [r.node_id for r in results] == ["t", "c", "x"]
    assert all(r.success for r in results)
    assert all(r.duration >= 0 for r in results)
    assert results[1].result["result"] is True


@pytest.mark.asyncio
async def test_failed_node_does_not_stop_run(node_executor, node):
    runner = RunStateMachine(node_executor)
    log = RunLog("run-1")
    workflow = _workflow(
        node("h", "action", "http", "Call API"),
        node("d", "logic", "error-handler", "Handle", action="Log Error", message="{{error.message}}"),
    )

    results = await runner.execute(workflow, "run-1", run_log=log)

    assert results[0].success is False
    assert "required" in results[0].error
    assert results[1].success is True
    assert "url is required" in results[1].result["message"]

    messages = [e.message for e in log.entries]
    assert messages[0] == "Starting execution of node: Call API"
    assert any(m.startswith("Node failed in ") and m.endswith("url is required") for m in messages)
    assert messages[-1].startswith("Node completed successfully in ")
    failed = next(e for e in log.entries if e.level.value == "error")
    assert set(failed.data) == {"error", "duration"}


@pytest.mark.asyncio
async def test_log_timestamps_non_decreasing(node_executor, node):
    log = RunLog("run-1")
    await RunStateMachine(node_executor).execute(
        _workflow(node("a", "action", "x"), node("b", "action", "y")), "run-1", run_log=log
    )
    stamps = [e.timestamp for e in log.entries]
    assert stamps == sorted(stamps)


@pytest.mark.asyncio
async def test_previous_node_output_flows_into_transform(node_executor, node):
    runner = RunStateMachine(node_executor)
    workflow = _workflow(
        node("w", "trigger", "webhook", "Hook"),
        node("t", "logic", "transform", "Pick", transformationType="Extract Field", inputField="data.json.id"),
    )

    results = await runner.execute(workflow, "run-1", trigger_data={"json": {"id": 42}})

    assert results[1].result["data"] == {"extracted_value": 42}


@pytest.mark.asyncio
async def test_malformed_workflow_raises(node_executor):
    runner = RunStateMachine(node_executor)
    with pytest.raises(WorkflowEngineError, match="Malformed workflow data"):
        await runner.execute({"id": "wf", "nodes": [{"id": "n", "kind": "teleport"}]}, "run-1")


@pytest.mark.asyncio
async def test_log_write_failure_escapes(node_executor, node):
    append = AsyncMock(side_effect=StorageError("disk full"))
    runner = RunStateMachine(node_executor, append_log=append)

    with pytest.raises(StorageError, match="disk full"):
        await runner.execute(_workflow(node("a", "action", "x")), "run-1")


@pytest.mark.asyncio
async def test_node_results_serialize(node_executor, node):
    results = await RunStateMachine(node_executor).execute(
        _workflow(node("a", "action", "x", "Thing")), "run-1"
    )
    assert results[0].to_dict() == {
        "node_id": "a",
        "label": "Thing",
        "kind": "action",
        "subtype": "x",
        "duration": results[0].duration,
        "success": True,
        "result": {"success": True, "simulated": True, "message": "Simulated x action"},
    }
