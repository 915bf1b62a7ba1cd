"""
Milestone Escrow - Main Application Entry Point

Milestone proposal, escrow funding and two-stage approval service.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from milestone_escrow import __version__
from milestone_escrow.core.config import get_settings
from milestone_escrow.core.logger import setup_logger

logger = setup_logger(__name__)


def warn_if_auth_disabled(settings) -> bool:
    """Every request runs as a super-admin when auth is off, including release and disapprove."""
    if settings.AUTH_REQUIRED:
        return False
    logger.warning(
        "AUTH_REQUIRED is false: all requests act as super-admin and can release escrow"
    )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info("Starting Milestone Escrow in %s mode...", settings.ENVIRONMENT)
    warn_if_auth_disabled(settings)

    if settings.is_local:
        from milestone_escrow.infrastructure.local.database import init_db

        await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Milestone Escrow...")
    from milestone_escrow.api.deps import get_milestone_service

    await get_milestone_service().wait_for_notifications()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Milestone Escrow",
        description="Milestone proposal, escrow funding and two-stage approval",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from milestone_escrow.api import milestones, notifications, projects

    app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
    app.include_router(milestones.router, prefix="/api", tags=["milestones"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": __version__,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "milestone_escrow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
