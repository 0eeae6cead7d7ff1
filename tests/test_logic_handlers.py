"""Tests for conditional, delay, error-handler and transform handlers."""

import json
import time

import pytest
from pydantic import ValidationError

from models.nodes import ConditionalParams, DelayParams, ErrorHandlerParams, TransformParams
from services.execution import NodeConfigError
from services.handlers import (
    handle_conditional,
    handle_delay,
    handle_error_handler,
    handle_transform,
)


@pytest.mark.asyncio
async def test_conditional_payload(run_context):
    params = ConditionalParams.model_validate({"operand1": "5", "operator": "greater_than", "operand2": "3"})
    result = await handle_conditional("n1", params, run_context())

    assert result == {
        "success": True,
        "result": True,
        "message": "Condition evaluated: true",
        "condition": "5 greater_than 3",
    }


@pytest.mark.asyncio
async def test_conditional_unknown_operator_succeeds_with_false(run_context):
    params = ConditionalParams.model_validate({"operand1": "a", "operator": "bogus", "operand2": "a"})
    result = await handle_conditional("n1", params, run_context())
    assert result["success"] is True
    assert result["result"] is False


@pytest.mark.asyncio
async def test_delay_sleeps_for_duration(run_context):
    params = DelayParams.model_validate({"duration": 0.2, "unit": "seconds"})
    start = time.perf_counter()
    result = await handle_delay("n1", params, run_context())

    assert time.perf_counter() - start >= 0.2
    assert result["duration"] == 200
    assert result["message"] == "Delayed execution for 0.2 seconds"


def test_delay_units_and_defaults():
    assert DelayParams.model_validate({}).seconds == 5
    assert DelayParams.model_validate({"duration": 2, "unit": "minutes"}).seconds == 120
    assert DelayParams.model_validate({"duration": 1, "unit": "hours"}).seconds == 3600


@pytest.mark.parametrize("duration", ["inf", "-inf", "nan", float("inf")])
def test_delay_rejects_non_finite_duration(duration):
    with pytest.raises(ValidationError):
        DelayParams.model_validate({"duration": duration})


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["Log Error", "Send Notification", "Retry", "Stop Workflow", "Shrug"])
async def test_error_handler_always_succeeds(run_context, action):
    params = ErrorHandlerParams.model_validate({"action": action, "message": "oops", "retryCount": 2})
    result = await handle_error_handler("n1", params, run_context())

    assert result["success"] is True
    assert result["action"] == action
    assert result["message"] == "oops"
    assert result["retryCount"] == 2
    assert "timestamp" in result


class TestTransform:

    @pytest.mark.asyncio
    async def test_json_parse_previous_output(self, run_context):
        ctx = run_context()
        ctx.record_success("http-1", "Fetch", {"data": '{"id": 3}'})
        params = TransformParams.model_validate({"transformationType": "JSON Parse", "inputField": "data"})

        result = await handle_transform("t1", params, ctx)

        assert result["data"] == {"parsed_data": {"id": 3}}
        assert result["message"] == "Data transformed using JSON Parse"
        assert result["transformationType"] == "JSON Parse"

    @pytest.mark.asyncio
    async def test_json_stringify_with_output_field(self, run_context):
        ctx = run_context()
        ctx.record_success("a", "A", {"x": 1})
        params = TransformParams.model_validate({"transformationType": "JSON Stringify", "outputField": "text"})

        result = await handle_transform("t1", params, ctx)

        assert json.loads(result["data"]["text"]) == {"x": 1}

    @pytest.mark.asyncio
    async def test_extract_field_from_source_node(self, run_context):
        ctx = run_context()
        ctx.record_success("a", "Users", {"users": [{"name": "Ada"}]})
        ctx.record_success("b", "Other", {"unrelated": True})
        params = TransformParams.model_validate({
            "transformationType": "Extract Field", "inputField": "users.0.name", "sourceNode": "users",
        })

        result = await handle_transform("t1", params, ctx)

        assert result["data"] == {"extracted_value": "Ada"}

    @pytest.mark.asyncio
    async def test_extract_field_requires_input_field(self, run_context):
        params = TransformParams.model_validate({"transformationType": "Extract Field"})
        with pytest.raises(NodeConfigError, match="inputField is required"):
            await handle_transform("t1", params, run_context())

    @pytest.mark.asyncio
    async def test_format_string(self, run_context):
        ctx = run_context()
        ctx.record_success("a", "A", {"name": "Ada", "meta": {"age": 36}})
        params = TransformParams.model_validate({
            "transformationType": "Format String", "template": "{name} is {meta.age}, {missing}",
        })

        result = await handle_transform("t1", params, ctx)

        assert result["data"] == {"formatted_string": "Ada is 36, {missing}"}

    @pytest.mark.asyncio
    async def test_custom_script_is_not_executed(self, run_context):
        params = TransformParams.model_validate({"transformationType": "Custom Script", "script": "rm -rf /"})
        result = await handle_transform("t1", params, run_context())

        assert result["data"] == {"script_result": "script executed"}
        assert result["simulated"] is True

    @pytest.mark.asyncio
    async def test_unknown_type(self, run_context):
        params = TransformParams.model_validate({"transformationType": "Reverse"})
        result = await handle_transform("t1", params, run_context())
        assert result["data"] == {"transformed": True}

    @pytest.mark.asyncio
    async def test_invalid_json_fails(self, run_context):
        ctx = run_context()
        ctx.record_success("a", "A", "{not json")
        params = TransformParams.model_validate({"transformationType": "JSON Parse"})
        with pytest.raises(ValueError, match="invalid JSON"):
            await handle_transform("t1", params, ctx)
