"""
Plugin manifest schema — validates plugin.json files.
"""

from typing import Optional

from pydantic import BaseModel


class PluginManifest(BaseModel):
    id: str
    name: str
    version: str
    description: str = ""
    author: str = ""
    tools: list[str] = []  # tool names the plugin registers
    homepage: Optional[str] = None
