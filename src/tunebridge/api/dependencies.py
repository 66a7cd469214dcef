"""Dependency injection for API endpoints."""

import logging
from typing import cast

from fastapi import HTTPException, Request

from tunebridge.application.cache import ResolutionCache
from tunebridge.application.services import ResolutionService

logger = logging.getLogger(__name__)


# Hey future me, the service is built ONCE in the lifespan (see infrastructure/lifecycle.py)
# and parked on app.state. If it isn't there, startup failed or hasn't finished - answer
# 503 instead of blowing up with an AttributeError.
def get_resolution_service(request: Request) -> ResolutionService:
    """Get the resolution service from app state.

    Raises:
        HTTPException: 503 if the service is not initialized
    """
    if not hasattr(request.app.state, "resolution_service"):
        raise HTTPException(status_code=503, detail="Resolution service not initialized")
    return cast(ResolutionService, request.app.state.resolution_service)


def get_resolution_cache(request: Request) -> ResolutionCache | None:
    """Get the cache coordinator (None before startup finished)."""
    return getattr(request.app.state, "resolution_cache", None)
