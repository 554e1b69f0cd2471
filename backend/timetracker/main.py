"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetracker import __version__
from timetracker.api.v1.api import api_router
from timetracker.config import Settings, settings
from timetracker.services.data_service import DataService
from timetracker.store.base import RemoteStoreClient
from timetracker.store.keyvalue import JsonFileKeyValueStore
from timetracker.store.memory import InMemoryStoreClient
from timetracker.store.postgrest import PostgrestStoreClient

# Configure root logger early
log_level_str = settings.log_level.upper()
log_level = logging.TRACE if log_level_str == "TRACE" else getattr(logging, log_level_str, logging.INFO)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)-8s - %(message)s'
    )

    root = logging.getLogger()

    # VERBOSE shows HTTP details and store request traces
    if log_level_str == "VERBOSE":
        root_level = logging.DEBUG
        http_level = logging.DEBUG
        store_level = logging.TRACE
        root.info("VERBOSE mode enabled: HTTP details and store traces active for debugging.")
    elif log_level_str == "TRACE":
        root_level = logging.TRACE
        http_level = logging.TRACE
        store_level = logging.TRACE
    else:
        root_level = log_level
        http_level = logging.WARNING
        store_level = root_level

    root.setLevel(root_level)
    logging.getLogger("httpcore").setLevel(http_level)
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("timetracker.store").setLevel(store_level)

    root.trace("Trace logging enabled at startup (verbose details).") if log_level_str == "TRACE" else root.debug("Debug logging enabled at startup.")

log = logging.getLogger(__name__)


def build_store(config: Settings) -> RemoteStoreClient:
    backend = config.store_backend.lower()
    if backend == "memory":
        log.warning("Using the in-memory store; data is lost on restart")
        return InMemoryStoreClient()
    if backend == "postgrest":
        return PostgrestStoreClient(config.store_url, config.store_api_key, timeout=config.store_timeout)
    raise ValueError(f"Unknown store backend: {config.store_backend}")


def build_data_service(config: Settings) -> DataService:
    return DataService(build_store(config), JsonFileKeyValueStore(config.session_file), settings=config)


def create_app(data_service: Optional[DataService] = None) -> FastAPI:
    """Build the application. A prepared `data_service` skips store construction."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = data_service or build_data_service(settings)
        app.state.data_service = service
        user = await service.initialize()
        log.info(f"Time tracker started (session: {user.username if user else 'none'})")
        try:
            yield
        finally:
            await service.close()
            log.info("Time tracker stopped")

    app = FastAPI(
        title="Job Time Tracker",
        description="Time tracking backend with cached per-user and per-task aggregates",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__
        }

    @app.get("/")
    async def root():
        """Root endpoint - redirect to docs."""
        return {
            "message": "Job Time Tracker API",
            "version": __version__,
            "docs": "/docs"
        }

    app.include_router(api_router, prefix=settings.api_v1_str)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
