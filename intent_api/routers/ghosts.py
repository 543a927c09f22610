"""
Ghost API routes: CRUD endpoints for Ghost custom resources.

Features:
  - Rate limiting per-IP via slowapi
  - Prometheus metrics exposition
  - Redis Stream read-back of operator events
"""

import logging
from typing import Optional

import redis
from fastapi import APIRouter, HTTPException, Query, Request
from prometheus_client import Counter, Gauge
from slowapi import Limiter
from slowapi.util import get_remote_address

from ghost_operator.events import stream_key
from intent_api.config import settings
from intent_api.models import (
    GhostCreateRequest, GhostUpdateRequest, GhostResponse, GhostListResponse,
    GhostEvent, ErrorResponse,
)
from intent_api.services.kubernetes_service import (
    QuotaExceededError, list_ghosts, get_ghost, create_ghost, update_image_tag,
    delete_ghost, count_ghosts_by_phase,
)

logger = logging.getLogger("ghosts")

router = APIRouter(prefix="/ghosts", tags=["ghosts"])
limiter = Limiter(key_func=get_remote_address)


# --- Redis client (optional) ---
_redis_client = None


def _get_redis():
    """Lazy-init Redis. Returns None if unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL:
        return None
    try:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        _redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL}")
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable (non-fatal): {e}")
        _redis_client = None
        return None


# --- Prometheus metrics ---
GHOSTS_CREATED = Counter(
    "ghost_platform_ghosts_created_total",
    "Total Ghosts created",
)
GHOSTS_DELETED = Counter(
    "ghost_platform_ghosts_deleted_total",
    "Total Ghosts deleted",
)
API_FAILURES = Counter(
    "ghost_platform_api_failures_total",
    "Total Ghost API calls that failed against the cluster",
)
GHOSTS_TOTAL = Gauge(
    "ghost_platform_ghosts_total",
    "Current Ghosts by phase",
    ["phase"],
)


def update_gauges():
    counts = count_ghosts_by_phase()
    for phase in ["Ready", "Failed", "Pending"]:
        GHOSTS_TOTAL.labels(phase=phase).set(counts.get(phase, 0))


# =========================================================================
# REST Endpoints
# =========================================================================

@router.post("", response_model=GhostResponse, status_code=201,
             responses={429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def create_ghost_endpoint(req: GhostCreateRequest, request: Request):
    """Create a Ghost. Idempotent: returns the existing Ghost if the name matches."""
    name = req.name or req.namespace
    try:
        ghost, created = create_ghost(namespace=req.namespace, name=name, image_tag=req.imageTag)
    except QuotaExceededError as e:
        raise HTTPException(status_code=429, detail=str(e))
    except Exception as e:
        API_FAILURES.inc()
        logger.error(f"Failed to create Ghost {req.namespace}/{name}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create Ghost: {str(e)}")
    if created:
        GHOSTS_CREATED.inc()
    return ghost


@router.get("", response_model=GhostListResponse)
@limiter.limit(settings.RATE_LIMIT)
async def list_ghosts_endpoint(
    request: Request,
    namespace: Optional[str] = Query(None, description="Restrict to one tenant namespace"),
):
    """List Ghosts, optionally within a single namespace."""
    ghosts = list_ghosts(namespace=namespace)
    return GhostListResponse(ghosts=ghosts, total=len(ghosts))


@router.get("/{namespace}/{name}", response_model=GhostResponse,
            responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_ghost_endpoint(namespace: str, name: str, request: Request):
    """Get a specific Ghost."""
    ghost = get_ghost(namespace, name)
    if not ghost:
        raise HTTPException(status_code=404, detail=f"Ghost '{namespace}/{name}' not found")
    return ghost


@router.patch("/{namespace}/{name}", response_model=GhostResponse,
              responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def update_ghost_endpoint(namespace: str, name: str, req: GhostUpdateRequest,
                                request: Request):
    """Roll a Ghost to another image tag."""
    ghost = update_image_tag(namespace, name, req.imageTag)
    if not ghost:
        raise HTTPException(status_code=404, detail=f"Ghost '{namespace}/{name}' not found")
    return ghost


@router.delete("/{namespace}/{name}", status_code=202,
               responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def delete_ghost_endpoint(namespace: str, name: str, request: Request):
    """Delete a Ghost. Returns 202 Accepted; dependents are garbage-collected."""
    deleted = delete_ghost(namespace, name)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Ghost '{namespace}/{name}' not found")
    GHOSTS_DELETED.inc()
    return {"message": f"Ghost '{namespace}/{name}' deletion initiated", "status": "accepted"}


@router.get("/{namespace}/{name}/events")
@limiter.limit(settings.RATE_LIMIT)
async def get_ghost_events(namespace: str, name: str, request: Request):
    """
    Recent operator events for a Ghost, read from its Redis stream.
    Empty when Redis is not configured.
    """
    ghost = get_ghost(namespace, name)
    if not ghost:
        raise HTTPException(status_code=404, detail=f"Ghost '{namespace}/{name}' not found")

    events: list[GhostEvent] = []
    r = _get_redis()
    if r:
        try:
            for _entry_id, data in r.xrange(stream_key(namespace, name), count=50):
                events.append(GhostEvent(
                    timestamp=data.get("timestamp", ""),
                    type=data.get("type", ""),
                    reason=data.get("reason", ""),
                    message=data.get("message", ""),
                ))
        except redis.RedisError as e:
            logger.debug(f"Redis stream read failed: {e}")

    return {"ghost": f"{namespace}/{name}", "events": [e.model_dump() for e in events]}
