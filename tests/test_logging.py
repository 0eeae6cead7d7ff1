"""Tests for run-scoped log context."""

import structlog

from core.logging import bind_run_context


def test_run_context_is_bound_inside_block_only():
    with bind_run_context("run-1", "wf-1", "job_abc"):
        assert structlog.contextvars.get_contextvars() == {
            "run_id": "run-1", "workflow_id": "wf-1", "job_id": "job_abc",
        }
    assert "run_id" not in structlog.contextvars.get_contextvars()


def test_missing_ids_are_not_bound():
    with bind_run_context("run-2"):
        assert structlog.contextvars.get_contextvars() == {"run_id": "run-2"}
