"""Provider status dashboard."""

from fastapi import APIRouter, Depends

from core.coach_core import CoachCore
from dependencies import get_core

router = APIRouter()


@router.get("/api/providers")
def list_providers(core: CoachCore = Depends(get_core)):
    """Configured providers in priority order with their latest status records."""
    snapshot = core.status.snapshot()
    return {
        "policy": core.router.policy.name,
        "cache": core.router.cache.stats() if core.router.cache is not None else None,
        "providers": [
            {
                **snapshot[p.provider_id].to_dict(),
                "model": p.model,
                "configured": p.has_credentials,
            }
            for p in core.router.providers
            if p.provider_id in snapshot
        ],
    }
