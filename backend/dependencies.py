"""
FastAPI dependencies shared by route modules.
"""

from fastapi import HTTPException, Request

from core.coach_core import CoachCore


def get_core(request: Request) -> CoachCore:
    """Return the CoachCore instance from app state."""
    return request.app.state.coach_core


def require_ready(request: Request):
    """Dependency that returns 503 if the coach core is still starting."""
    core = request.app.state.coach_core
    if not core.ready:
        raise HTTPException(status_code=503, detail="Coach core is still initializing")
