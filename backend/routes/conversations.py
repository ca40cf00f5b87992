"""Conversation summary and reset endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from core.coach_core import CoachCore
from dependencies import get_core

router = APIRouter()


@router.get("/api/conversations/{conv_id}/summary")
def get_summary(conv_id: str, core: CoachCore = Depends(get_core)):
    summary = core.store.summarize(conv_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return summary.to_dict()


@router.get("/api/conversations/{conv_id}")
def get_conversation(conv_id: str, core: CoachCore = Depends(get_core)):
    state = core.store.get(conv_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {
        "id": state.id,
        "started_at": state.started_at.isoformat(),
        "updated_at": state.updated_at.isoformat(),
        "total_tool_calls": state.total_tool_calls,
        "primary_intent": state.primary_intent,
        "turns": [t.to_dict() for t in state.turns],
    }


@router.delete("/api/conversations/{conv_id}")
async def delete_conversation(conv_id: str, core: CoachCore = Depends(get_core)):
    if not await core.store.clear(conv_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"status": "deleted", "id": conv_id}
