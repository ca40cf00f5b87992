"""Coaching query endpoint (JSON or server-sent events)."""

import base64
import binascii
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import StreamingResponse

from core.coach_core import CoachCore
from dependencies import get_core, require_ready
from domain import RequestContext
from models import CoachQuery

logger = logging.getLogger(__name__)

router = APIRouter()


def _decode_media(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=422, detail="media_base64 is not valid base64")


@router.post("/api/coach/query", dependencies=[Depends(require_ready)])
async def coach_query(req: CoachQuery, core: CoachCore = Depends(get_core)):
    payload = _decode_media(req.media_base64) if req.media_base64 else None
    request = RequestContext.create(
        text=req.text,
        binary_payload=payload,
        conversation_id=req.conversation_id,
        domain_state=req.domain_state,
    )

    if not req.stream:
        response = await core.orchestrate(request, timeout=req.timeout)
        return {**response.to_dict(), "request_id": request.id,
                "conversation_id": request.conversation_id}

    stream = await core.orchestrate(request, stream=True, timeout=req.timeout)

    async def event_stream():
        try:
            async for event in stream:
                yield f"data: {json.dumps(event.to_dict(), default=str)}\n\n"
            yield "data: [DONE]\n\n"
        finally:
            stream.cancel()

    # Releases the conversation slot if the client disconnects before streaming starts.
    cleanup = BackgroundTasks()
    cleanup.add_task(stream.cancel)
    return StreamingResponse(event_stream(), media_type="text/event-stream", background=cleanup)
