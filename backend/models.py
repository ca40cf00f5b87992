"""
Pydantic request models shared across route modules.

Core data types (RequestContext, Response, ...) are dataclasses in domain.py;
these models only describe the HTTP bodies.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class CoachQuery(BaseModel):
    text: Optional[str] = Field(None, max_length=10_000)
    conversation_id: Optional[str] = Field(None, max_length=100)
    domain_state: dict[str, Any] = {}
    media_base64: Optional[str] = None
    stream: bool = False
    timeout: Optional[float] = Field(None, gt=0, le=60)


class ToolExecuteRequest(BaseModel):
    params: dict[str, Any] = {}
