"""FastAPI application factory."""

from fastapi import FastAPI

from tunebridge import __version__
from tunebridge.api.exception_handlers import register_exception_handlers
from tunebridge.api.routers import health, lookup
from tunebridge.infrastructure.lifecycle import lifespan
from tunebridge.infrastructure.observability import RequestLoggingMiddleware


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Create the FastAPI application.

    Args:
        with_lifespan: False skips startup wiring (tests put their own
            service on app.state)
    """
    app = FastAPI(
        title="TuneBridge",
        version=__version__,
        description="Cross-platform music link resolution",
        lifespan=lifespan if with_lifespan else None,
    )

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(lookup.router)

    return app
