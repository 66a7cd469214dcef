"""Health check endpoint for Docker/Kubernetes probes."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from tunebridge import __version__
from tunebridge.api.dependencies import get_resolution_cache
from tunebridge.application.cache import ResolutionCache

router = APIRouter(tags=["Health"])


class HealthStatus(BaseModel):
    """Overall health status response."""

    status: str = Field(description="healthy or starting")
    timestamp: str = Field(description="ISO timestamp of health check")
    version: str = Field(default=__version__, description="Application version")
    providers: list[str] = Field(
        default_factory=list, description="Providers with a registered adapter"
    )
    cache: dict[str, Any] = Field(default_factory=dict, description="Cache counters")


# Hey future me - "starting" means the lifespan hasn't parked the service on app.state
# yet. Probes should treat it as not-ready, but it still answers 200 so a liveness
# check doesn't kill a container that's just slow to boot.
@router.get("/health", response_model=HealthStatus)
async def health(
    request: Request,
    cache: ResolutionCache | None = Depends(get_resolution_cache),
) -> HealthStatus:
    """Application status: providers, cache counters."""
    registry = getattr(request.app.state, "registry", None)
    providers = (
        [provider.provider_type.value for provider in registry.get_all_providers()]
        if registry is not None
        else []
    )
    return HealthStatus(
        status="healthy" if cache is not None else "starting",
        timestamp=datetime.now(UTC).isoformat(),
        providers=providers,
        cache=cache.get_stats() if cache is not None else {},
    )
