"""
Tool Registry — deterministic capabilities the coach can run without a model.

Each tool is a ToolDescriptor (name, description, typed parameters) plus a
handler. Handlers may be plain functions or coroutines; they receive the
validated params dict and return a ToolResult (any other value is wrapped as
success data). A failing handler never raises out of execute(): the error is
logged and returned as ToolResult(success=False).

Usage:
    from tools import ToolRegistry, register_builtin_tools
    registry = ToolRegistry()
    register_builtin_tools(registry)
    result = await registry.execute("lookup_exercise", {"name": "squats"})
"""

import asyncio
import logging
import time
from typing import Any, Callable

from domain import ParamSpec, ToolDescriptor, ToolResult
from errors import DuplicateToolError, InvalidParametersError, UnknownToolError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict], Any]

_PY_TYPES = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
    "binary": (bytes, bytearray, memoryview),
}


def _check_type(tool: str, pname: str, spec: ParamSpec, value: Any):
    expected = _PY_TYPES[spec.type]
    # bool is an int subclass; keep it out of numeric slots
    if isinstance(value, bool) and spec.type in ("number", "integer"):
        raise InvalidParametersError(tool, f"'{pname}' must be {spec.type}, got boolean", pname)
    if not isinstance(value, expected):
        raise InvalidParametersError(
            tool, f"'{pname}' must be {spec.type}, got {type(value).__name__}", pname)


def _check_enum(tool: str, pname: str, spec: ParamSpec, value: Any):
    if not spec.enum:
        return
    values = value if spec.type == "array" else [value]
    for v in values:
        if v not in spec.enum:
            raise InvalidParametersError(
                tool, f"'{pname}' must be one of {list(spec.enum)}, got {v!r}", pname)


def validate_params(descriptor: ToolDescriptor, params: dict) -> dict:
    """Check params against the descriptor. Returns only the declared params."""
    if not isinstance(params, dict):
        raise InvalidParametersError(descriptor.name, "params must be an object")

    cleaned = {}
    for pname, spec in descriptor.parameters.items():
        value = params.get(pname)
        if value is None:
            if spec.required:
                raise InvalidParametersError(
                    descriptor.name, f"missing required parameter '{pname}'", pname)
            continue
        _check_type(descriptor.name, pname, spec, value)
        _check_enum(descriptor.name, pname, spec, value)
        cleaned[pname] = value

    extra = set(params) - set(descriptor.parameters)
    if extra:
        logger.debug("Tool %s ignoring undeclared params: %s", descriptor.name, sorted(extra))
    return cleaned


class ToolRegistry:
    """Name -> (descriptor, handler). Built at start-up, read-only afterwards."""

    def __init__(self):
        self._tools: dict[str, tuple[ToolDescriptor, ToolHandler]] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler):
        if descriptor.name in self._tools:
            raise DuplicateToolError(descriptor.name)
        if not callable(handler):
            raise TypeError(f"Handler for tool '{descriptor.name}' is not callable")
        self._tools[descriptor.name] = (descriptor, handler)
        logger.debug("Registered tool: %s", descriptor.name)

    # ── Read API ──

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor:
        entry = self._tools.get(name)
        if entry is None:
            raise UnknownToolError(name)
        return entry[0]

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[ToolDescriptor]:
        return [d for d, _ in self._tools.values()]

    def schemas(self) -> list[dict]:
        return [d.to_schema() for d in self.descriptors()]

    def __len__(self):
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    # ── Execution ──

    async def execute(self, name: str, params: dict) -> ToolResult:
        """Validate and run a tool.

        Raises UnknownToolError / InvalidParametersError before the handler
        runs. Handler failures come back as ToolResult(success=False).
        """
        entry = self._tools.get(name)
        if entry is None:
            raise UnknownToolError(name)
        descriptor, handler = entry
        cleaned = validate_params(descriptor, params or {})

        start = time.monotonic()
        try:
            result = handler(cleaned)
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            result = ToolResult.fail(str(e) or type(e).__name__)

        if not isinstance(result, ToolResult):
            result = ToolResult.ok(result)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result.metadata = {**result.metadata, "tool": name, "elapsed_ms": elapsed_ms}
        if result.success:
            logger.info("Tool %s ok in %dms", name, elapsed_ms)
        return result


def register_tool(registry: ToolRegistry, descriptor: ToolDescriptor, handler: ToolHandler):
    """External registration API for built-ins and plugins."""
    registry.register(descriptor, handler)


def register_builtin_tools(registry: ToolRegistry) -> list[str]:
    """Install the fitness tools. Returns the names registered."""
    from tools_fitness import get_fitness_tools

    names = []
    for descriptor, handler in get_fitness_tools():
        register_tool(registry, descriptor, handler)
        names.append(descriptor.name)
    return names
