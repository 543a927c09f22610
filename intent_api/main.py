"""
Ghost Platform: Intent API

Main entrypoint. Sets up FastAPI with:
  - CORS for dashboard access
  - Rate limiting (slowapi)
  - Prometheus metrics (/metrics)
  - Health check (/health)
  - Ghost CRUD routes (/api/ghosts)
"""

import logging
import uvicorn
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ghost_operator import __version__
from intent_api.config import settings
from intent_api.routers.ghosts import router as ghosts_router, limiter, _get_redis, update_gauges

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("intent-api")


# --- Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Ghost Platform Intent API starting...")
    yield
    logger.info("Ghost Platform Intent API shutting down...")


# --- FastAPI app ---
app = FastAPI(
    title="Ghost Platform API",
    description="Intent API for per-tenant Ghost blogs on Kubernetes",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Include ghosts router ---
app.include_router(ghosts_router, prefix="/api")


# --- Health check ---
@app.get("/health")
async def health():
    """Health check with Redis connectivity status."""
    redis_status = "disabled"
    if settings.REDIS_URL:
        redis_status = "connected" if _get_redis() else "disconnected"

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "redis": redis_status,
        "version": __version__,
    }


# --- Prometheus metrics endpoint ---
@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    """Expose Prometheus metrics."""
    try:
        update_gauges()
    except Exception as e:
        logger.warning(f"Could not refresh Ghost gauges: {e}")
    return PlainTextResponse(
        content=generate_latest().decode("utf-8"),
        media_type=CONTENT_TYPE_LATEST,
    )


# --- Global exception handler ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# --- Entry point ---
if __name__ == "__main__":
    uvicorn.run(
        "intent_api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info",
        reload=False,
    )
