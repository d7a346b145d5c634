"""
cush/main.py

Purpose: ASGI application for the Cush platform

- Builds the FastAPI app and wires logging, error handlers and routers
- Stacks middleware: CORS outermost, then request timing, then the session gate
- Opens the key-value store on startup and closes it on shutdown
- Serves the health endpoints (/, /health, /ready, /live)
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cush.core.access import session_gate
from cush.core.config import settings, validate_settings
from cush.core.errors import add_exception_handlers
from cush.core.logging import setup_logging, get_logger
from cush.db.redis_client import connect_to_redis, close_redis_connection, check_store_health, get_store
from cush.api import (
    admin,
    applications,
    auth,
    consultations,
    documents,
    email_templates,
    flights,
    notifications,
    partners,
    system,
)

setup_logging()
logger = get_logger(__name__)

APP_NAME = "Cush API"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Migration advisory and financial services platform"
SLOW_REQUEST_SECONDS = 5.0


async def _open_store() -> None:
    await connect_to_redis()
    store = get_store()

    if not await check_store_health():
        logger.warning(f"⚠️ Store ping failed right after connecting ({store.backend})")
    elif store.is_fallback:
        logger.warning("⚠️ Running on the in-process store; data will not survive a restart")
    else:
        logger.info(f"✅ Store ready ({store.backend})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate settings and open the store before serving; release it afterwards."""
    logger.info(f"🚀 Booting {APP_NAME} v{APP_VERSION} ({settings.ENVIRONMENT}, debug={settings.DEBUG})")

    try:
        validate_settings()
        await _open_store()
    except Exception as e:
        logger.critical(f"Startup aborted: {str(e)}", exc_info=True)
        raise

    logger.info("🎉 Ready for requests")
    yield

    logger.info("🛑 Stopping, closing store connection")
    try:
        await close_redis_connection()
    except Exception as e:
        logger.error(f"Store close failed: {str(e)}", exc_info=True)
    else:
        logger.info("👋 Shutdown complete")


app = FastAPI(
    title=APP_NAME,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

add_exception_handlers(app)

# Registered first so it sits innermost; preflights are answered by CORS before reaching it
app.middleware("http")(session_gate)


@app.middleware("http")
async def time_request(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"

    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning(
            f"🐢 {request.method} {request.url.path} took {elapsed:.2f}s",
            extra={"process_time": elapsed}
        )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROUTERS = (
    (auth.router, "/api/auth", "Auth"),
    (admin.router, "/api/admin", "Admin"),
    (documents.router, "/api/documents", "Documents"),
    (notifications.router, "/api", "Notifications"),
    (applications.router, "/api", "Applications & Payments"),
    (email_templates.router, "/api/email-templates", "Email Templates"),
    (flights.router, "/api/flights", "Flights"),
    (consultations.router, "/api/consultations", "Consultations"),
    (partners.router, "/api", "Partners"),
    (system.router, "/api", "System"),
)

for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=prefix, tags=[tag])


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
        "status": "running",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Report store connectivity.

    ``healthy`` on Redis, ``degraded`` on the in-process fallback (still 200),
    ``unhealthy`` with 503 when the store does not answer.
    """
    if not await check_store_health():
        store_state, overall, status_code = "unhealthy", "unhealthy", 503
    elif get_store().is_fallback:
        store_state, overall, status_code = "fallback", "degraded", 200
    else:
        store_state, overall, status_code = "healthy", "healthy", 200

    return JSONResponse(status_code=status_code, content={
        "status": overall,
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {"store": store_state},
    })


@app.get("/ready", tags=["Health"])
async def readiness_check():
    if await check_store_health():
        return {"status": "ready"}
    return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "store_unavailable"})


@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cush.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
