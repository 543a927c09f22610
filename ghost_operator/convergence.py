"""
Convergence engine: drive one dependent kind toward its desired state.

For each kind the decision is:

    observed absent         -> stamp owner, create          (Created)
    diff == NoChange        -> nothing                      (Unchanged)
    diff == Patch / Replace -> apply onto observed, update  (Updated)

Kinds are independent of each other. A Deployment that references a PVC
not yet created is accepted by the API server and simply stays pending,
so ordering is only a latency concern; ``DEPENDENTS`` lists the PVC first.

The engine never retries. Any read/create/update failure is raised as a
ConvergenceError naming the kind and operation, with the original
exception attached.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ghost_operator import desired, store
from ghost_operator.diff import (
    ChangeSet,
    NoChange,
    Patch,
    apply_changes,
    diff_deployment,
    diff_immutable,
)
from ghost_operator.errors import ConvergenceError
from ghost_operator.events import NORMAL, EventRecorder
from ghost_operator.models import Ghost
from ghost_operator.ownership import stamp_owner

logger = logging.getLogger("ghost-operator.convergence")


class Action(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    UNCHANGED = "Unchanged"


@dataclass(frozen=True)
class DependentKind:
    kind: str
    short: str
    generate: Callable[[Ghost], Any]
    observe: Callable[[store.ClusterStore, Ghost], Any]
    diff: Callable[[Any, Any], ChangeSet]

    @property
    def ready_reason(self) -> str:
        return f"{self.short}Ready"

    @property
    def updated_reason(self) -> str:
        return f"{self.short}Updated"


PVC = DependentKind(
    kind="PersistentVolumeClaim",
    short="PVC",
    generate=desired.desired_pvc,
    observe=store.observed_pvc,
    diff=diff_immutable,
)
DEPLOYMENT = DependentKind(
    kind="Deployment",
    short="Deployment",
    generate=desired.desired_deployment,
    observe=store.observed_deployment,
    diff=diff_deployment,
)
SERVICE = DependentKind(
    kind="Service",
    short="Service",
    generate=desired.desired_service,
    observe=store.observed_service,
    diff=diff_immutable,
)

DEPENDENTS = (PVC, DEPLOYMENT, SERVICE)


@dataclass(frozen=True)
class ConvergenceResult:
    kind: str
    action: Action
    name: Optional[str]
    change: ChangeSet = NoChange()


def _emit(recorder: EventRecorder, ghost: Ghost, type: str, reason: str, message: str):
    try:
        recorder.record(ghost, type, reason, message)
    except Exception as e:
        logger.warning(f"Event {reason} for {ghost.namespace}/{ghost.name} dropped: {e}")


def _describe(change: ChangeSet) -> str:
    if isinstance(change, Patch):
        return "patched " + ", ".join(
            f"{c.path}: {c.observed!r} -> {c.desired!r}" for c in change.changes
        )
    return f"spec replaced ({change.reason})"


def converge(dependent: DependentKind, ghost: Ghost,
             cluster: store.ClusterStore, recorder: EventRecorder) -> ConvergenceResult:
    """Converge a single dependent kind for ``ghost``."""
    try:
        observed = dependent.observe(cluster, ghost)
    except Exception as e:
        raise ConvergenceError(dependent.kind, "read", e) from e

    try:
        want = dependent.generate(ghost)
    except Exception as e:
        raise ConvergenceError(dependent.kind, "generate", e) from e

    if observed is None:
        try:
            stamp_owner(want, ghost)
        except Exception as e:
            raise ConvergenceError(dependent.kind, "stamp_owner", e) from e
        try:
            created = cluster.create(want)
        except Exception as e:
            raise ConvergenceError(dependent.kind, "create", e) from e

        name = created.metadata.name
        logger.info(f"[{ghost.namespace}/{ghost.name}] {dependent.kind} {name} created")
        _emit(recorder, ghost, NORMAL, dependent.ready_reason,
              f"{dependent.short} {name} created successfully")
        return ConvergenceResult(dependent.kind, Action.CREATED, name)

    name = observed.metadata.name
    change = dependent.diff(observed, want)
    if isinstance(change, NoChange):
        logger.debug(f"[{ghost.namespace}/{ghost.name}] {dependent.kind} {name} up to date")
        return ConvergenceResult(dependent.kind, Action.UNCHANGED, name)

    updated = apply_changes(observed, want, change)
    try:
        cluster.update(updated)
    except Exception as e:
        raise ConvergenceError(dependent.kind, "update", e) from e

    message = f"{dependent.short} {name} {_describe(change)}"
    logger.info(f"[{ghost.namespace}/{ghost.name}] {message}")
    _emit(recorder, ghost, NORMAL, dependent.updated_reason, message)
    return ConvergenceResult(dependent.kind, Action.UPDATED, name, change)


def converge_all(ghost: Ghost, cluster: store.ClusterStore,
                 recorder: EventRecorder) -> list[ConvergenceResult]:
    """Converge every dependent kind in order, stopping at the first error."""
    return [converge(dependent, ghost, cluster, recorder) for dependent in DEPENDENTS]
