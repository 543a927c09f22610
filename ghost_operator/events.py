"""
Event recording: fire-and-forget by contract.

A recorder failure is logged and dropped; it must never abort a
reconciliation.
"""
import json as _json
import logging
from datetime import datetime, timezone
from typing import Protocol

import kopf
import redis

from ghost_operator.config import settings
from ghost_operator.models import Ghost

logger = logging.getLogger("ghost-operator.events")

NORMAL = "Normal"
WARNING = "Warning"

STREAM_MAXLEN = 100


class EventRecorder(Protocol):
    def record(self, subject: Ghost, type: str, reason: str, message: str) -> None: ...


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def stream_key(namespace: str, name: str) -> str:
    return f"ghost:events:{namespace}/{name}"


# ---------------------------------------------------------------------------
# Redis client (optional, skipped when unreachable)
# ---------------------------------------------------------------------------
_redis_client = None


def _get_redis():
    """Lazy-init Redis client. Returns None if unavailable."""
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


def publish_event(ghost: Ghost, event_type: str, reason: str, message: str):
    """Publish to the per-Ghost Redis stream and the global channel."""
    r = _get_redis()
    if not r:
        return
    entry = {
        "type": event_type,
        "reason": reason,
        "message": message,
        "ghost": f"{ghost.namespace}/{ghost.name}",
        "timestamp": _now(),
    }
    try:
        r.xadd(stream_key(ghost.namespace, ghost.name), entry, maxlen=STREAM_MAXLEN)
        r.publish("ghost:events", _json.dumps(entry))
    except redis.RedisError as e:
        logger.debug(f"Redis publish failed (non-fatal): {e}")


def _object_ref(ghost: Ghost) -> dict:
    return {
        "apiVersion": ghost.api_version,
        "kind": ghost.kind,
        "metadata": {"name": ghost.name, "namespace": ghost.namespace, "uid": ghost.uid},
    }


class KopfEventRecorder:
    """Posts k8s Events through kopf and mirrors them to Redis."""

    def record(self, subject: Ghost, type: str, reason: str, message: str) -> None:
        try:
            kopf.event(_object_ref(subject), type=type, reason=reason, message=message)
        except Exception as e:
            logger.warning(f"Failed to post event {reason} for {subject.namespace}/{subject.name}: {e}")
        publish_event(subject, type, reason, message)

