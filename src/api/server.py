#!/usr/bin/env python
"""FastAPI server for the SceneCraft storyboard workspace."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from api.dependencies import ServiceContainer, build_services
from api.routers import storyboard, voiceovers
from api.schemas import HealthResponse
from services.blob_store import LocalBlobStore
from services.errors import (
    AuthorizationError,
    EntitlementError,
    RecordNotFoundError,
    UpstreamServiceError,
)
from utils.config import load_config, validate_config
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def register_exception_handlers(app: FastAPI) -> None:
    """Translate storyboard errors into HTTP responses."""

    @app.exception_handler(EntitlementError)
    async def entitlement_error(request: Request, exc: EntitlementError) -> JSONResponse:
        return JSONResponse(
            status_code=402,
            content={
                "detail": str(exc),
                "upgrade_required": True,
                "feature": exc.feature,
            },
        )

    # Ownership failures look the same as missing records
    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Not found"})

    @app.exception_handler(AuthorizationError)
    async def not_authorized(request: Request, exc: AuthorizationError) -> JSONResponse:
        logger.warning(str(exc))
        return JSONResponse(status_code=404, content={"detail": "Not found"})

    @app.exception_handler(UpstreamServiceError)
    async def upstream_error(request: Request, exc: UpstreamServiceError) -> JSONResponse:
        logger.error(f"Upstream service failed on {request.url.path}: {exc}")
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def invalid_value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(config: dict | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """Build the application.

    Args:
        config: Configuration dict, loaded from the environment when omitted
        services: Prebuilt services (tests inject fakes this way)

    Returns:
        Configured FastAPI app
    """
    config = config if config is not None else load_config()
    setup_logging(config.get("log_level", "INFO"), config.get("log_json", False))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = services
        if container is None:
            for problem in validate_config(config):
                logger.warning(f"Configuration: {problem}")
            container = build_services(config)
        app.state.services = container
        await container.start()
        logger.info("SceneCraft API started")
        try:
            yield
        finally:
            await container.stop()
            app.state.services = None
            logger.info("SceneCraft API stopped")

    app = FastAPI(title="SceneCraft API", version=API_VERSION, lifespan=lifespan)

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(storyboard.router)
    app.include_router(voiceovers.router)

    @app.get("/api/health", response_model=HealthResponse, summary="Health check")
    async def health(request: Request) -> dict:
        """Health check endpoint."""
        container = getattr(request.app.state, "services", None)
        return {
            "status": "healthy",
            "pending_jobs": container.runner.pending if container else 0,
        }

    @app.get("/api/blobs/{blob_id}", summary="Serve a locally stored blob")
    async def get_blob(blob_id: str, request: Request) -> FileResponse:
        """Serve a blob from the local blob folder."""
        container = getattr(request.app.state, "services", None)
        blob_store = container.blob_store if container else None
        if not isinstance(blob_store, LocalBlobStore):
            raise HTTPException(status_code=404, detail="Not found")
        try:
            path = blob_store.path_for(blob_id)
        except ValueError:
            raise HTTPException(status_code=404, detail="Not found")
        if not path.exists():
            raise HTTPException(status_code=404, detail="Not found")
        return FileResponse(path=str(path))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
