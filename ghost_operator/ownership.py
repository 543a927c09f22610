"""
Owner references from dependents back to their Ghost.

The reference is what lets the cluster garbage collector delete a Ghost's
PVC, Deployment and Service when the Ghost goes away; the operator never
issues deletes itself.
"""
from kubernetes import client

from ghost_operator.errors import OwnershipError
from ghost_operator.models import Ghost


def owner_reference(owner: Ghost) -> client.V1OwnerReference:
    missing = [
        field for field, value in (
            ("apiVersion", owner.api_version),
            ("kind", owner.kind),
            ("name", owner.name),
            ("uid", owner.uid),
        ) if not value
    ]
    if missing:
        raise OwnershipError(
            f"Cannot resolve owner {owner.namespace}/{owner.name}: missing {', '.join(missing)}"
        )
    return client.V1OwnerReference(
        api_version=owner.api_version,
        kind=owner.kind,
        name=owner.name,
        uid=owner.uid,
        controller=True,
        block_owner_deletion=True,
    )


def stamp_owner(dependent, owner: Ghost):
    """
    Set ``owner`` as the controlling owner of ``dependent`` before creation.

    Refuses to take over an object already controlled by someone else and
    refuses cross-namespace ownership, which the garbage collector ignores.
    """
    ref = owner_reference(owner)
    meta = dependent.metadata
    if meta.namespace and meta.namespace != owner.namespace:
        raise OwnershipError(
            f"Cross-namespace owner reference: {meta.namespace} -> {owner.namespace}"
        )

    refs = [r for r in (meta.owner_references or []) if r.uid != ref.uid]
    for existing in refs:
        if existing.controller:
            raise OwnershipError(
                f"Object is already controlled by {existing.kind} {existing.name}"
            )
    refs.append(ref)
    meta.owner_references = refs
    return dependent


def is_owned_by(obj, owner: Ghost) -> bool:
    return any(
        ref.uid == owner.uid and ref.controller
        for ref in (obj.metadata.owner_references or [])
    )
