"""Tool listing and direct tool execution."""

from fastapi import APIRouter, Depends, HTTPException

from core.coach_core import CoachCore
from dependencies import get_core
from errors import InvalidParametersError, UnknownToolError
from models import ToolExecuteRequest

router = APIRouter()


@router.get("/api/tools")
def list_tools(core: CoachCore = Depends(get_core)):
    """OpenAI-style function schemas for every registered tool."""
    return {"tools": core.registry.schemas()}


@router.post("/api/tools/{name}")
async def execute_tool(name: str, req: ToolExecuteRequest, core: CoachCore = Depends(get_core)):
    try:
        result = await core.registry.execute(name, req.params)
    except UnknownToolError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except InvalidParametersError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    return result.to_dict()
