"""
Plugin system — discover and load optional tool bundles.

Plugins are directories under plugins/ with an __init__.py that exports:
  - PLUGIN_ID: str
  - get_plugin() -> CoachPlugin

A CoachPlugin declares the tools it provides and executes them; the core
registers each declared tool in the ToolRegistry, dispatching calls back to
plugin.execute(). Each plugin may also ship a plugin.json manifest.

Usage:
    from plugins import load_enabled_plugins, register_plugin
    for plugin in load_enabled_plugins(["recovery"]):
        await register_plugin(registry, plugin)
"""

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from domain import ToolDescriptor
from plugins.manifest_schema import PluginManifest
from tools import ToolRegistry

logger = logging.getLogger(__name__)

_loaded_plugins: dict[str, "CoachPlugin"] = {}
_plugins_dir = Path(__file__).parent


class CoachPlugin:
    """Base class for tool bundles.

    Subclasses set plugin_id, name, version and tools, and override execute().
    `rules` are IntentRules the core adds to its classifier so requests can
    reach the plugin's tools.
    """

    plugin_id: str = ""
    name: str = ""
    version: str = "0.0.0"
    tools: list[ToolDescriptor] = []
    rules: list = []

    async def initialize(self):
        """Called once before the plugin's tools are registered."""

    async def shutdown(self):
        """Called when the core shuts down."""

    async def execute(self, tool_name: str, params: dict) -> Any:
        raise NotImplementedError


def _dispatcher(plugin: CoachPlugin, tool_name: str):
    async def handler(params: dict):
        return await plugin.execute(tool_name, params)
    handler.__name__ = tool_name
    return handler


async def register_plugin(registry: ToolRegistry, plugin: CoachPlugin) -> list[str]:
    """Initialize a plugin and register every tool it declares.

    Raises DuplicateToolError if a tool name is already taken; tools
    registered before the clash stay registered.
    """
    await plugin.initialize()
    names = []
    for descriptor in plugin.tools:
        registry.register(descriptor, _dispatcher(plugin, descriptor.name))
        names.append(descriptor.name)
    return names


def discover_plugins() -> list[str]:
    """Scan the plugins directory for available plugins."""
    found = []
    for child in _plugins_dir.iterdir():
        if child.is_dir() and (child / "__init__.py").exists():
            if child.name.startswith("_"):
                continue
            found.append(child.name)
    return sorted(found)


def load_plugin(name: str) -> Optional[CoachPlugin]:
    """Import a plugin module and return its CoachPlugin. None on failure."""
    if name in _loaded_plugins:
        return _loaded_plugins[name]

    try:
        module = importlib.import_module(f"plugins.{name}")
        factory = getattr(module, "get_plugin", None)
        if factory is None:
            logger.error("Plugin '%s' has no get_plugin()", name)
            return None
        plugin = factory()
    except Exception as e:
        logger.error("Failed to load plugin '%s': %s", name, e)
        return None

    _loaded_plugins[name] = plugin
    logger.info("Plugin loaded: %s %s", plugin.plugin_id or name, plugin.version)
    return plugin


def load_enabled_plugins(enabled_names: list[str]) -> list[CoachPlugin]:
    """Load all plugins that are in the enabled list."""
    loaded = []
    available = discover_plugins()
    for name in enabled_names:
        if name in available:
            plugin = load_plugin(name)
            if plugin:
                loaded.append(plugin)
        else:
            logger.warning("Plugin '%s' is enabled but not found in plugins/", name)
    return loaded


def get_plugin_manifest(name: str) -> Optional[PluginManifest]:
    """Read and validate plugin.json for a plugin. Returns None if missing or invalid."""
    manifest_path = _plugins_dir / name / "plugin.json"
    if not manifest_path.exists():
        return None
    try:
        return PluginManifest(**json.loads(manifest_path.read_text()))
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        logger.warning("Failed to read plugin.json for '%s': %s", name, e)
        return None


def get_plugin_manifests() -> list[dict]:
    """Manifest info for every discovered plugin, flagged with its load state."""
    manifests = []
    for name in discover_plugins():
        manifest = get_plugin_manifest(name)
        if manifest is not None:
            info = manifest.model_dump()
        else:
            info = {"id": name, "name": name, "version": "0.0.0", "description": "", "tools": []}
        info["loaded"] = name in _loaded_plugins
        manifests.append(info)
    return manifests
