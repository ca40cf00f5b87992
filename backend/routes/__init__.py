"""
Route registration — includes all API routers into the FastAPI app.
"""

from fastapi import FastAPI

from routes.health import router as health_router
from routes.coach import router as coach_router
from routes.conversations import router as conversations_router
from routes.providers import router as providers_router
from routes.tools import router as tools_router
from routes.plugins import router as plugins_router


def register_routes(app: FastAPI):
    """Mount all API routers onto the app."""
    app.include_router(health_router)
    app.include_router(coach_router)
    app.include_router(conversations_router)
    app.include_router(providers_router)
    app.include_router(tools_router)
    app.include_router(plugins_router)
