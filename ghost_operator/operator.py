"""
Ghost Operator: kopf handlers for blog.example.com/v1 Ghost resources.

  Ghost CR → kopf watches → reconcile(namespace, name):
    1. PersistentVolumeClaim  ghost-data-pvc-<instance>
    2. Deployment             ghost-deployment-<instance>-xxxxx  (app=ghost-<instance>)
    3. Service                ghost-service-<instance>

  On Delete:
    Nothing to do here. Dependents carry a controller owner reference and
    are removed by the cluster garbage collector.

  Resync (Timer):
    Re-runs the same reconciliation periodically so dependents deleted or
    changed out-of-band are restored without waiting for a Ghost edit.

kopf provides the scheduling contract: per-object single-flight, retries
with backoff on TemporaryError, and no retries on PermanentError.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone

import kopf

from ghost_operator import config
from ghost_operator.config import settings
from ghost_operator.convergence import DEPENDENTS
from ghost_operator.errors import ConvergenceError, GhostOperatorError
from ghost_operator.events import KopfEventRecorder
from ghost_operator.metrics import record_failure, record_outcome, start_metrics_server
from ghost_operator.reconciler import Outcome, ReconcileKey, reconcile
from ghost_operator.store import KubernetesStore

logger = logging.getLogger("ghost-operator")

CRD_GROUP = settings.CRD_GROUP
CRD_VERSION = settings.CRD_VERSION
CRD_PLURAL = settings.CRD_PLURAL

CONDITION_TYPES = {d.kind: d.ready_reason for d in DEPENDENTS}

_store = KubernetesStore()
_recorder = KopfEventRecorder()

# Change handlers and the resync timer run as separate kopf tasks; these
# keep them from converging the same Ghost at the same time.
_key_locks: dict[ReconcileKey, threading.Lock] = defaultdict(threading.Lock)
_key_locks_guard = threading.Lock()


def _lock_for(key: ReconcileKey) -> threading.Lock:
    with _key_locks_guard:
        return _key_locks[key]


def _forget(key: ReconcileKey):
    """Drop the lock of a Ghost that no longer exists, unless a run holds it."""
    with _key_locks_guard:
        lock = _key_locks.get(key)
        if lock is not None and not lock.locked():
            del _key_locks[key]


# ---------------------------------------------------------------------------
# Status update helpers
# ---------------------------------------------------------------------------

def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def set_condition(conditions: list, ctype: str, status: str, reason: str, message: str):
    """Upsert a condition in a conditions list. The transition time only moves on status change."""
    for c in conditions:
        if c.get("type") == ctype:
            if c.get("status") != status:
                c["lastTransitionTime"] = _now()
            c["status"] = status
            c["reason"] = reason
            c["message"] = message
            return
    conditions.append({
        "type": ctype,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": _now(),
    })


def _apply_outcome(outcome: Outcome, conditions: list, patch):
    for r in outcome.results:
        set_condition(conditions, CONDITION_TYPES[r.kind], "True", r.action.value,
                      f"{r.kind} {r.name} {r.action.value.lower()}")
    patch.status["phase"] = "Ready"
    patch.status["message"] = "All dependent resources converged"
    patch.status["conditions"] = conditions
    patch.status["lastReconciled"] = _now()


def _apply_failure(error: GhostOperatorError, conditions: list, patch):
    if isinstance(error, ConvergenceError) and error.kind in CONDITION_TYPES:
        set_condition(conditions, CONDITION_TYPES[error.kind], "False",
                      f"{error.operation.title()}Failed", str(error)[:200])
    patch.status["phase"] = "Failed"
    patch.status["message"] = str(error)[:200]
    patch.status["conditions"] = conditions
    patch.status["lastReconciled"] = _now()


def _run(namespace: str, name: str, status, patch, logger) -> dict:
    key = ReconcileKey(namespace=namespace, name=name)
    conditions = list((status or {}).get("conditions", []))

    try:
        with _lock_for(key):
            outcome = reconcile(key, _store, _recorder)
    except GhostOperatorError as e:
        record_failure(e.retryable)
        _apply_failure(e, conditions, patch)
        if not e.retryable:
            logger.error(f"Ghost {key}: permanent failure: {e}")
            raise kopf.PermanentError(str(e)) from e
        logger.warning(f"Ghost {key}: retrying in {settings.RETRY_DELAY}s: {e}")
        raise kopf.TemporaryError(str(e), delay=settings.RETRY_DELAY) from e

    record_outcome(outcome)
    if not outcome.found:
        _forget(key)
        return {"message": "Ghost not found"}
    _apply_outcome(outcome, conditions, patch)
    return {r.kind: r.action.value for r in outcome.results}


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **kwargs):
    settings.posting.enabled = True
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=CRD_GROUP
    )
    # Per-object single-flight is kopf's; this only caps parallel Ghosts
    settings.execution.max_workers = config.settings.MAX_WORKERS
    start_metrics_server()
    logger.info(
        f"Ghost Operator started (max_workers={config.settings.MAX_WORKERS}, "
        f"resync={config.settings.RESYNC_INTERVAL}s, group={CRD_GROUP})"
    )


# ---------------------------------------------------------------------------
# CREATE / UPDATE / RESUME handler
# ---------------------------------------------------------------------------

@kopf.on.create(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
@kopf.on.update(CRD_GROUP, CRD_VERSION, CRD_PLURAL, field="spec")
@kopf.on.resume(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
def reconcile_ghost(name, namespace, status, patch, logger, **kwargs):
    """Reconcile a Ghost's dependents after any spec change or operator restart."""
    return _run(namespace, name, status, patch, logger)


# ---------------------------------------------------------------------------
# TIMER: periodic resync
# ---------------------------------------------------------------------------

@kopf.timer(CRD_GROUP, CRD_VERSION, CRD_PLURAL,
            interval=settings.RESYNC_INTERVAL, idle=settings.RESYNC_INTERVAL)
def resync_ghost(name, namespace, status, patch, logger, **kwargs):
    """Restore dependents changed or removed behind the operator's back."""
    _run(namespace, name, status, patch, logger)
