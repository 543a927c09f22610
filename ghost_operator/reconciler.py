"""
Reconcile entry point: one call per (namespace, name) key.

Scheduling, retries and per-key single-flight belong to the caller (kopf
in production). This function fetches the Ghost, converges its dependents
in order and either returns an Outcome or raises.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ghost_operator.config import settings
from ghost_operator.convergence import Action, ConvergenceResult, converge_all
from ghost_operator.errors import ConvergenceError
from ghost_operator.events import EventRecorder
from ghost_operator.models import Ghost
from ghost_operator.store import ClusterStore

logger = logging.getLogger("ghost-operator.reconciler")


@dataclass(frozen=True)
class ReconcileKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Outcome:
    key: ReconcileKey
    found: bool
    results: tuple[ConvergenceResult, ...] = ()

    @property
    def changed(self) -> bool:
        return any(r.action != Action.UNCHANGED for r in self.results)

    def action_for(self, kind: str) -> Optional[Action]:
        for r in self.results:
            if r.kind == kind:
                return r.action
        return None


def fetch_ghost(cluster: ClusterStore, key: ReconcileKey) -> Optional[Ghost]:
    try:
        body = cluster.get(settings.CRD_KIND, key.namespace, key.name)
    except Exception as e:
        raise ConvergenceError(settings.CRD_KIND, "read", e) from e
    if body is None:
        return None
    if (body.get("metadata") or {}).get("deletionTimestamp"):
        # Dependents go with it through their owner references
        logger.info(f"Ghost {key} is being deleted, nothing to do")
        return None
    return Ghost.from_resource(body)


def reconcile(key: ReconcileKey, cluster: ClusterStore, recorder: EventRecorder) -> Outcome:
    """
    Bring the dependents of the Ghost at ``key`` in line with its spec.

    A missing Ghost is success: deletion cascades through owner
    references, so there is nothing to clean up. Errors are raised as
    ConvergenceError (or InvalidGhostError) for the caller to retry or not.
    """
    ghost = fetch_ghost(cluster, key)
    if ghost is None:
        logger.info(f"Ghost {key} not found, nothing to reconcile")
        return Outcome(key=key, found=False)

    logger.info(f"Reconciling Ghost {key} (imageTag={ghost.image_tag}, team={ghost.namespace})")
    results = converge_all(ghost, cluster, recorder)
    outcome = Outcome(key=key, found=True, results=tuple(results))
    logger.info(
        f"Reconciliation of {key} complete: "
        + ", ".join(f"{r.kind}={r.action.value}" for r in results)
    )
    return outcome
