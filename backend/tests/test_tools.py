"""
Tests for the ToolRegistry: registration, validation and execution.
"""

import asyncio

import pytest

from domain import ParamSpec, ToolDescriptor, ToolResult
from errors import DuplicateToolError, InvalidParametersError, UnknownToolError
from tools import ToolRegistry, register_builtin_tools, validate_params


def _echo_descriptor(name="echo", **params):
    return ToolDescriptor(name, "Echo params back", params or {"word": ParamSpec("string", required=True)})


class TestRegistration:

    def test_duplicate_name_rejected(self):
        reg = ToolRegistry()
        reg.register(_echo_descriptor(), lambda p: p)
        with pytest.raises(DuplicateToolError):
            reg.register(_echo_descriptor(), lambda p: p)
        assert len(reg) == 1

    def test_non_callable_handler_rejected(self):
        reg = ToolRegistry()
        with pytest.raises(TypeError):
            reg.register(_echo_descriptor(), "not a function")

    def test_builtins_registered(self):
        reg = ToolRegistry()
        names = register_builtin_tools(reg)
        assert set(names) == {
            "plan_workout", "lookup_exercise", "recommend_exercises", "analyze_form",
            "analyze_nutrition", "analyze_biometrics", "track_progress", "voice_coach",
        }
        assert "plan_workout" in reg
        assert reg.names() == names

    def test_get_unknown_raises(self):
        with pytest.raises(UnknownToolError):
            ToolRegistry().get("missing")

    def test_schema_shape(self, registry):
        schemas = {s["function"]["name"]: s for s in registry.schemas()}
        plan = schemas["plan_workout"]["function"]["parameters"]
        assert plan["required"] == ["goal", "duration"]
        assert "strength" in plan["properties"]["goal"]["enum"]
        form = schemas["analyze_form"]["function"]["parameters"]["properties"]
        assert form["media"] == {"type": "string", "format": "binary",
                                 "description": "Photo or video frame"}


class TestValidation:

    def test_missing_required(self):
        with pytest.raises(InvalidParametersError) as exc:
            validate_params(_echo_descriptor(), {})
        assert exc.value.parameter == "word"

    def test_wrong_type(self):
        desc = _echo_descriptor(count=ParamSpec("integer", required=True))
        with pytest.raises(InvalidParametersError):
            validate_params(desc, {"count": "three"})

    def test_bool_is_not_a_number(self):
        desc = _echo_descriptor(weight=ParamSpec("number", required=True))
        with pytest.raises(InvalidParametersError):
            validate_params(desc, {"weight": True})

    def test_enum_checked_per_array_item(self):
        desc = _echo_descriptor(groups=ParamSpec("array", required=True, enum=("chest", "back")))
        assert validate_params(desc, {"groups": ["chest"]}) == {"groups": ["chest"]}
        with pytest.raises(InvalidParametersError):
            validate_params(desc, {"groups": ["chest", "wings"]})

    def test_undeclared_params_dropped(self):
        cleaned = validate_params(_echo_descriptor(), {"word": "hi", "extra": 1})
        assert cleaned == {"word": "hi"}


class TestExecution:

    @pytest.mark.asyncio
    async def test_sync_handler_wrapped(self):
        reg = ToolRegistry()
        reg.register(_echo_descriptor(), lambda p: {"said": p["word"]})
        result = await reg.execute("echo", {"word": "hello"})
        assert result.success
        assert result.data == {"said": "hello"}
        assert result.metadata["tool"] == "echo"
        assert "elapsed_ms" in result.metadata

    @pytest.mark.asyncio
    async def test_async_handler(self):
        async def handler(params):
            await asyncio.sleep(0)
            return ToolResult.ok(params["word"].upper(), source="test")

        reg = ToolRegistry()
        reg.register(_echo_descriptor(), handler)
        result = await reg.execute("echo", {"word": "hi"})
        assert result.data == "HI"
        assert result.metadata["source"] == "test"

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failed_result(self):
        def handler(params):
            raise ValueError("bad input")

        reg = ToolRegistry()
        reg.register(_echo_descriptor(), handler)
        result = await reg.execute("echo", {"word": "x"})
        assert not result.success
        assert result.error == "bad input"

    @pytest.mark.asyncio
    async def test_unknown_tool_raises(self):
        with pytest.raises(UnknownToolError):
            await ToolRegistry().execute("nope", {})

    @pytest.mark.asyncio
    async def test_invalid_params_raise_before_handler(self):
        called = []
        reg = ToolRegistry()
        reg.register(_echo_descriptor(), lambda p: called.append(p))
        with pytest.raises(InvalidParametersError):
            await reg.execute("echo", {"word": 5})
        assert called == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def slow(params):
            await asyncio.sleep(10)

        reg = ToolRegistry()
        reg.register(_echo_descriptor(), slow)
        task = asyncio.ensure_future(reg.execute("echo", {"word": "x"}))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_read_only_tool_repeatable(self, registry):
        first = await registry.execute("lookup_exercise", {"name": "squat"})
        second = await registry.execute("lookup_exercise", {"name": "squat"})
        assert first.success and second.success
        assert first.data == second.data
        first.data["cues"].append("mutated")
        third = await registry.execute("lookup_exercise", {"name": "squat"})
        assert "mutated" not in third.data["cues"]
