"""PDF Optimizer - FastAPI application."""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import Settings, get_logger, settings
from app.errors import JobError
from app.api.v1.router import v1_router, upload_router_root
from app.api.v1.health import router as health_root_router
from app.api.v1 import health as health_api
from app.api.v1 import upload as upload_api
from app.jobs.download import DownloadGate
from app.jobs.manager import JobManager
from app.jobs.scheduler import IdleExpiryScheduler
from app.jobs.store import JobStore
from app.jobs.transform import CommandTransformer, Transformer
from app.storage.temp_files import TempFileStore

logger = get_logger(__name__)


def create_app(
    config: Optional[Settings] = None,
    transformer: Optional[Transformer] = None,
) -> FastAPI:
    """Build the application.

    ``config`` defaults to the environment-driven settings and
    ``transformer`` to the shrinkpdf/pdfsizeopt pipeline; tests pass their
    own.
    """
    config = config or settings
    transformer = transformer or CommandTransformer.from_settings(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info("Starting PDF Optimizer on port %s", config.port)
        logger.info("Storage dir: %s", config.storage_dir)
        logger.info("Idle TTL: %ss", config.idle_ttl_seconds)

        files = TempFileStore(base_dir=config.storage_dir)
        files.prepare()

        store = JobStore(files)
        scheduler = IdleExpiryScheduler(store, ttl_seconds=config.idle_ttl_seconds)
        manager = JobManager(
            store,
            scheduler,
            transformer,
            max_upload_bytes=config.max_upload_bytes,
            shutdown_grace_seconds=config.shutdown_grace_seconds,
            retention_seconds=config.record_retention_seconds,
            sweep_interval_seconds=config.sweep_interval_seconds,
        )
        gate = DownloadGate(store, scheduler)
        await manager.start()

        # Wire manager and gate into API endpoints
        upload_api.set_manager(manager)
        upload_api.set_gate(gate)
        health_api.set_manager(manager)
        app.state.manager = manager
        app.state.gate = gate

        yield

        # Shutdown
        logger.info("[shutdown] closing, expiring all jobs...")
        await manager.shutdown()
        upload_api.set_manager(None)
        upload_api.set_gate(None)
        health_api.set_manager(None)

    app = FastAPI(
        title="PDF Optimizer",
        description="Shrinks uploaded PDFs and hands each result back exactly once",
        version="0.2.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(JobError)
    async def job_error_handler(request: Request, exc: JobError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # Mount routers
    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # /api/v1/*
    app.include_router(upload_router_root)  # /upload, /status, /download

    # Upload page last so it never shadows the API
    if config.static_dir and os.path.isdir(config.static_dir):
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")

    return app


app = create_app()
