"""
Campus ERP Record Store - FastAPI Application Entry Point.

This is the main application module that:
1. Sets up structured JSON logging
2. Builds the record store on startup (local storage + optional mirror)
3. Starts the remote overlay fetch in the background
4. Implements request ID middleware (X-Request-ID header)
5. Registers the records, hostel, session and mirror routers

The application follows a modular architecture:
- routes/: API endpoint handlers (the presentation layer)
- services/: record store, hostel rules, persistence, mirror, exports
- models/: SQLAlchemy model for the local key-value table
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import asyncio
import contextlib
import time
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from campus_erp import config
from campus_erp.database import make_engine, make_session_factory, create_tables
from campus_erp.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from campus_erp.routes import records, hostel, session, mirror
from campus_erp.services.file_mirror import FileMirror
from campus_erp.services.local_storage import LocalStorage
from campus_erp.services.mirror_client import MirrorClient
from campus_erp.services.notifications import LogNotifier
from campus_erp.services.persistence import PersistenceBackend
from campus_erp.services.record_store import RecordStore
from campus_erp.services.records import RecordsService

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")
store_logger = get_logger("store")

VERSION = "1.0.0"


def create_app(database_url: str = config.DATABASE_URL,
               mirror_url: Optional[str] = config.MIRROR_URL,
               data_dir: str = config.MIRROR_DATA_DIR,
               overlay_on_startup: bool = config.OVERLAY_ON_STARTUP,
               mirror_transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Build the application.

    Args:
        database_url: SQLAlchemy URL of the local key-value store
        mirror_url: Base URL of the remote mirror, None for local only
        data_dir: Directory served by /get_data and /save_data
        overlay_on_startup: Fetch the mirror overlay in the background at startup
        mirror_transport: httpx transport override for the mirror client (tests)
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(database_url)
        # Auto-create tables for SQLite; PostgreSQL uses the Alembic migration
        if database_url.startswith("sqlite"):
            create_tables(engine)

        mirror_client = None
        if mirror_url:
            mirror_client = MirrorClient(mirror_url, timeout=config.MIRROR_TIMEOUT,
                                         transport=mirror_transport)

        store = RecordStore(PersistenceBackend(LocalStorage(make_session_factory(engine)), mirror_client))
        store.load_all()
        notifier = LogNotifier()

        app.state.store = store
        app.state.notifier = notifier
        app.state.records = RecordsService(store, notifier)
        app.state.file_mirror = FileMirror(data_dir)

        log_with_context(store_logger, "INFO", "Record store loaded",
                         extra_data={"mirror": mirror_url, "database": engine.url.render_as_string(hide_password=True)})

        overlay_task = None
        if mirror_client is not None and overlay_on_startup:
            overlay_task = asyncio.create_task(store.load_remote_overlay())
        app.state.overlay_task = overlay_task

        yield

        if overlay_task is not None and not overlay_task.done():
            overlay_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await overlay_task
        await store.drain()
        engine.dispose()

    app = FastAPI(
        title="Campus ERP Record Store",
        description=(
            "Records management for students, teachers, courses, attendance, fees, "
            "examinations and hostel allocation, persisted as JSON collections with "
            "an optional file-backed mirror."
        ),
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ──────────────────────────────────────────────────────────
    # CORS Middleware
    #
    # The static front end is served from a different origin.
    # ──────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """
        Generate a unique request ID for every HTTP request.

        The ID goes into a context variable (picked up by every log entry)
        and the X-Request-ID response header. Start and completion are
        logged with latency.
        """
        req_id = generate_request_id()
        request_id_var.set(req_id)
        start_time = time.time()

        log_with_context(logger, "INFO",
            f"Request started: {request.method} {request.url.path}",
            context={"request_id": req_id},
            extra_data={
                "ip": request.client.host if request.client else "unknown",
                "query_params": dict(request.query_params)
            })

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = req_id

        log_with_context(logger, "INFO",
            f"Request completed: {request.method} {request.url.path} → {response.status_code}",
            context={"request_id": req_id},
            extra_data={
                "duration_ms": round(duration_ms, 2),
                "status_code": response.status_code
            })

        return response

    app.include_router(records.router, tags=["Records"])
    app.include_router(hostel.router, tags=["Hostel"])
    app.include_router(session.router, tags=["Session"])
    app.include_router(mirror.router, tags=["Mirror"])

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint for container health checks and monitoring."""
        return {"status": "healthy", "service": "campus-erp-record-store", "version": VERSION}

    @app.get("/", tags=["Root"])
    def root():
        """Root endpoint with API information."""
        return {
            "service": "Campus ERP Record Store",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "collections": "GET /api/collections/{name}",
                "students": "POST /api/students",
                "marks": "POST /api/examinations/marks",
                "allocate": "POST /api/hostel/allocations",
                "suggest": "GET /api/hostel/suggest?gender=",
                "mirror_get": "GET /get_data?key=",
                "mirror_save": "POST /save_data"
            }
        }

    return app


app = create_app()
