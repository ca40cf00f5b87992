"""Health and public config endpoints."""

from fastapi import APIRouter, Depends

from core.coach_core import CoachCore
from dependencies import get_core
from profile_loader import get_profile

router = APIRouter()


@router.get("/health")
def health(core: CoachCore = Depends(get_core)):
    return {
        "status": "ok",
        "coach_ready": core.ready,
        "tools": len(core.registry),
        "conversations": len(core.store),
    }


@router.get("/api/config")
def get_public_config():
    """Return system name and enabled plugins. Never includes credentials."""
    profile = get_profile()
    return {
        "name": profile.system.name,
        "description": profile.system.description,
        "policy": profile.routing.policy,
        "plugins": list(profile.plugins.enabled),
    }
