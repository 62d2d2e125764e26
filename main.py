"""
main.py
FastAPI application entry point.
Registers all routers, middleware, exception handlers, startup/shutdown events.

- Structured JSON logs with a request id on every response
- Application errors mapped to stable JSON bodies
- Realtime change relay started with the app
- Prometheus metrics
"""

import asyncio
import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from logging import LogRecord

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from config.database import close_db, init_db
from config.redis_client import close_redis, init_redis
from config.settings import settings
from shared.errors import AppError, PersistenceFailure, RateLimitExceeded
from shared.events import bus

# Service routers
from services.auth.router import router as auth_router
from services.profile.router import router as profile_router
from services.discovery.router import router as discovery_router
from services.swipe.router import router as swipe_router
from services.match.router import router as match_router
from services.chat.router import router as chat_router
from services.notification.router import router as notification_router
from services.report.router import router as report_router
from services.admin.router import router as admin_router
from services.ratelimit.router import router as ratelimit_router
from services.realtime.router import router as realtime_router


# ── Logging ──────────────────────────────────────────────────

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


# Configure structured logging
handler = logging.StreamHandler()
handler.setFormatter(JSONFormatter())
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    handlers=[handler],
)
logger = logging.getLogger(__name__)


# ── Lifespan (startup/shutdown) ───────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle handler."""
    logger.info(f"Starting {settings.APP_NAME}...")

    # Initialize connections
    await init_db()
    logger.info("Database connected")

    await init_redis()
    logger.info("Redis connected")

    stop = asyncio.Event()
    listener = None
    if settings.REALTIME_BACKEND == "redis":
        listener = asyncio.create_task(bus.listen(stop))
        logger.info("Realtime relay listening on Redis")

    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} is ready")
    yield

    # Cleanup
    stop.set()
    if listener:
        await listener
    await close_redis()
    await close_db()
    logger.info("Server shutdown complete")


# ── App Factory ───────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Campus Match API

Backend for a university matching app:
- **Profiles**: setup and edits, each reviewed by an admin before it is shown
- **Discovery**: swipe queue filtered by mutual gender preference
- **Matches**: mutual right swipes, three campus missions per match, chat
- **Safety**: content filtering, per-action rate limits, reports, bans
- **Admin**: review queue, report handling, stats, audit trail

### Authentication
All protected endpoints require `Authorization: Bearer <session token>` issued
by the identity provider. Call `POST /auth/session` right after sign-in.

### Roles
- `user`: browse, swipe, chat, report
- `admin`: review profiles, handle reports, read the audit trail
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (order matters, outermost first) ───────────────
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Process-Time",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            "X-Force-Sign-Out",
        ],
    )

    # GZip compression
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # ── Custom Middleware ──────────────────────────────────────────

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique X-Request-ID to every request for tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def process_time_middleware(request: Request, call_next):
        """Track and expose request processing time."""
        start = time.perf_counter()
        response = await call_next(request)
        process_time = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time"] = f"{process_time}ms"
        return response

    # ── Exception Handlers ─────────────────────────────────────────

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        headers = exc.headers() if isinstance(exc, RateLimitExceeded) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(SQLAlchemyError)
    async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
        request_id = getattr(request.state, "request_id", None)
        logger.error(f"[{request_id}] Persistence failure: {exc}", exc_info=exc)
        failure = PersistenceFailure()
        return JSONResponse(status_code=failure.status_code, content=failure.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler. Never expose stack traces in production."""
        request_id = getattr(request.state, "request_id", None)
        detail = str(exc) if settings.DEBUG else "An internal server error occurred"

        logger.error(f"[{request_id}] Exception: {str(exc)}", exc_info=exc)

        return JSONResponse(
            status_code=500,
            content={
                "detail": detail,
                "request_id": request_id,
            },
        )

    # ── Routes ────────────────────────────────────────────────────

    # Health check (public)
    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check():
        from config import redis_client as redis_module
        from sqlalchemy import text
        from config.database import AsyncSessionLocal

        checks = {"status": "ok", "version": settings.APP_VERSION}

        # DB check
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except SQLAlchemyError:
            checks["database"] = "error"
            checks["status"] = "degraded"

        # Redis check
        try:
            if redis_module.redis_client is not None:
                await redis_module.redis_client.ping()
            checks["redis"] = "ok"
        except RedisError:
            checks["redis"] = "error"
            checks["status"] = "degraded"

        status_code = 200 if checks["status"] == "ok" else 503
        return JSONResponse(content=checks, status_code=status_code)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    # Register all service routers
    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(discovery_router)
    app.include_router(swipe_router)
    app.include_router(match_router)
    app.include_router(chat_router)
    app.include_router(notification_router)
    app.include_router(report_router)
    app.include_router(admin_router)
    app.include_router(ratelimit_router)
    app.include_router(realtime_router)

    # ── Prometheus Metrics ─────────────────────────────────────────
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )
