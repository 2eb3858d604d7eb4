"""
FastAPI entrypoint for the Script Video Factory API.

* The CLI (run_full_pipeline.py) runs one pipeline in the foreground
* This API runs one pipeline at a time in the background and exposes its state
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes_pipeline import router as runs_router
from app.core.config import Settings, settings
from app.core.logging_config import get_logger, setup_logging
from app.pipelines.run_manager import RunManager

logger = get_logger(__name__)


def create_app(app_settings: Optional[Settings] = None, run_manager: Optional[RunManager] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        app_settings: Settings (global settings by default)
        run_manager: Run manager (built from the settings by default)
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("=" * 60)
        logger.info(f"Starting {app_settings.app_name} v{app_settings.app_version}")
        logger.info(f"Debug mode: {app_settings.debug}")
        logger.info("=" * 60)
        yield
        if app.state.run_manager.cancel():
            logger.warning("Cancelled active run on shutdown")
        logger.info("Shutting down application")

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="Script Video Factory - turns narration scripts into captioned videos",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.run_manager = run_manager or RunManager(app_settings, logger)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(runs_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": app_settings.app_name,
            "version": app_settings.app_version,
            "status": "running",
            "endpoints": {
                "start_run": "/runs",
                "current_run": "/runs/current",
                "events": "/runs/current/events",
                "cancel": "/runs/current/cancel",
                "docs": "/docs",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "busy": app.state.run_manager.is_running}

    return app


setup_logging(log_level=settings.log_level, log_file=settings.log_file)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
