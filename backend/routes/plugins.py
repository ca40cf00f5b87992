"""Plugin discovery endpoint."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/api/plugins")
def list_plugins():
    """List all discovered plugins with their manifests."""
    from plugins import get_plugin_manifests
    return get_plugin_manifests()
