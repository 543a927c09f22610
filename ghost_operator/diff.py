"""
Desired vs. observed comparison as a structured change-set.

``diff_*`` functions are pure and return one of:

  NoChange          observed already satisfies desired
  Patch(changes)    only the listed fields differ; apply them in place
  Replace(reason)   observed cannot be patched, take desired's whole spec

Only the fields the operator manages are compared. Anything else on the
observed object (replica count, extra env, annotations) belongs to whoever
changed it and is carried through untouched.
"""
import copy
from dataclasses import dataclass
from typing import Any, Callable, Union

from ghost_operator.desired import data_volume, primary_container


@dataclass(frozen=True)
class NoChange:
    pass


@dataclass(frozen=True)
class FieldChange:
    path: str
    observed: Any
    desired: Any


@dataclass(frozen=True)
class Patch:
    changes: tuple[FieldChange, ...]

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.changes]


@dataclass(frozen=True)
class Replace:
    reason: str


ChangeSet = Union[NoChange, Patch, Replace]


@dataclass(frozen=True)
class _ManagedField:
    path: str
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]


def _set_image(deployment, value):
    primary_container(deployment).image = value


def _set_claim(deployment, value):
    data_volume(deployment).persistent_volume_claim.claim_name = value


DEPLOYMENT_FIELDS = (
    _ManagedField(
        path="spec.template.spec.containers[ghost].image",
        get=lambda d: primary_container(d).image,
        set=_set_image,
    ),
    _ManagedField(
        path="spec.template.spec.volumes[ghost-data].persistentVolumeClaim.claimName",
        get=lambda d: data_volume(d).persistent_volume_claim.claim_name,
        set=_set_claim,
    ),
)

_FIELDS_BY_PATH = {f.path: f for f in DEPLOYMENT_FIELDS}


def diff_immutable(observed, desired) -> ChangeSet:
    """PVCs and Services are left alone once they exist."""
    return NoChange()


def diff_deployment(observed, desired) -> ChangeSet:
    if primary_container(observed) is None:
        return Replace("observed Deployment has no 'ghost' container")
    if data_volume(observed) is None:
        return Replace("observed Deployment has no 'ghost-data' volume")

    changes = tuple(
        FieldChange(f.path, f.get(observed), f.get(desired))
        for f in DEPLOYMENT_FIELDS
        if f.get(observed) != f.get(desired)
    )
    if not changes:
        return NoChange()
    return Patch(changes)


def apply_changes(observed, desired, change: ChangeSet):
    """
    Return the object to submit as the update for ``change``.

    ``observed`` is not mutated. Metadata (name, resourceVersion, owner
    references) always comes from ``observed``.
    """
    updated = copy.deepcopy(observed)
    if isinstance(change, Patch):
        for fc in change.changes:
            _FIELDS_BY_PATH[fc.path].set(updated, fc.desired)
    elif isinstance(change, Replace):
        updated.spec = copy.deepcopy(desired.spec)
    return updated
