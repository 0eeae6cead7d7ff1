"""Tests for {{key.path}} template resolution against the run data context."""

from services.execution import RunContext, RunLog
from services.parameter_resolver import ParameterResolver


def _context(**trigger):
    ctx = RunContext(run_id="r1", workflow_id="w1", log=RunLog("r1"), trigger_data=trigger or None)
    ctx.record_success("node-1", "Fetch Users", {"status": 200, "data": {"users": [{"name": "Ada"}]}})
    return ctx


def test_whole_template_keeps_type():
    resolved = ParameterResolver().resolve({"value": "{{fetchusers.status}}"}, _context().template_data())
    assert resolved["value"] == 200


def test_reference_by_node_id_and_list_index():
    resolved = ParameterResolver().resolve(
        {"who": "{{node-1.data.users.0.name}}"}, _context().template_data()
    )
    assert resolved["who"] == "Ada"


def test_embedded_template_is_stringified():
    resolved = ParameterResolver().resolve(
        {"message": "Got {{previous_node.status}} for {{ fetchusers.data.users.0.name }}"},
        _context().template_data(),
    )
    assert resolved["message"] == "Got 200 for Ada"


def test_unresolved_template_is_left_intact():
    resolved = ParameterResolver().resolve(
        {"a": "{{nobody.field}}", "b": "x {{fetchusers.nope}} y"}, _context().template_data()
    )
    assert resolved["a"] == "{{nobody.field}}"
    assert resolved["b"] == "x {{fetchusers.nope}} y"


def test_nested_structures_and_trigger():
    resolved = ParameterResolver().resolve(
        {"headers": {"X-Source": "{{trigger.method}}"}, "list": ["{{trigger.json.id}}", 3]},
        _context(method="POST", json={"id": 7}).template_data(),
    )
    assert resolved == {"headers": {"X-Source": "POST"}, "list": [7, 3]}


def test_error_context_after_failure():
    ctx = _context()
    ctx.record_failure("node-2", "boom")
    resolved = ParameterResolver().resolve({"m": "{{error.message}} at {{error.node_id}}"}, ctx.template_data())
    assert resolved["m"] == "boom at node-2"


def test_input_is_not_modified():
    config = {"value": "{{fetchusers.status}}"}
    ParameterResolver().resolve(config, _context().template_data())
    assert config == {"value": "{{fetchusers.status}}"}
