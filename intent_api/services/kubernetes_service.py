"""
Kubernetes service layer: abstracts all K8s API interactions for Ghost CRs.

Design principles:
  - Idempotent: create returns the existing Ghost if it is already there
  - Quota enforcement: at most MAX_GHOSTS_PER_NAMESPACE per tenant
  - Clean error handling: 404 becomes None/False, everything else propagates
"""

import logging
from typing import Optional
from kubernetes import client, config
from kubernetes.client import ApiException

from intent_api.config import settings
from intent_api.models import GhostResponse, GhostCondition

logger = logging.getLogger("kubernetes_service")

_k8s_loaded = False


class QuotaExceededError(ValueError):
    pass


def _ensure_k8s():
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def _api() -> client.CustomObjectsApi:
    _ensure_k8s()
    return client.CustomObjectsApi()


def _parse_ghost(item: dict) -> GhostResponse:
    """Convert a raw Ghost custom object into a GhostResponse model."""
    spec = item.get("spec", {})
    status = item.get("status", {})
    conditions = [
        GhostCondition(**c) for c in status.get("conditions", [])
    ]
    return GhostResponse(
        name=item["metadata"]["name"],
        namespace=item["metadata"]["namespace"],
        imageTag=spec.get("imageTag", ""),
        phase=status.get("phase", "Pending"),
        message=status.get("message", ""),
        lastReconciled=status.get("lastReconciled"),
        conditions=conditions,
    )


def list_ghosts(namespace: Optional[str] = None) -> list[GhostResponse]:
    """List Ghosts in one namespace, or cluster-wide."""
    api = _api()
    if namespace:
        result = api.list_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL
        )
    else:
        result = api.list_cluster_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, settings.CRD_PLURAL
        )
    return [_parse_ghost(item) for item in result.get("items", [])]


def get_ghost(namespace: str, name: str) -> Optional[GhostResponse]:
    """Get a single Ghost by namespace/name."""
    api = _api()
    try:
        item = api.get_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL, name
        )
        return _parse_ghost(item)
    except ApiException as e:
        if e.status == 404:
            return None
        raise


def create_ghost(namespace: str, name: str, image_tag: str) -> tuple[GhostResponse, bool]:
    """
    Create a Ghost. Idempotent: returns the existing Ghost if already created.
    The flag is True only when this call created it.
    Raises QuotaExceededError when the namespace already holds its quota.
    """
    api = _api()

    existing = get_ghost(namespace, name)
    if existing:
        logger.info(f"Ghost {namespace}/{name} already exists, returning existing")
        return existing, False

    in_namespace = list_ghosts(namespace)
    if len(in_namespace) >= settings.MAX_GHOSTS_PER_NAMESPACE:
        raise QuotaExceededError(
            f"Quota exceeded: namespace '{namespace}' already has {len(in_namespace)}"
            f"/{settings.MAX_GHOSTS_PER_NAMESPACE} Ghosts"
        )

    body = {
        "apiVersion": f"{settings.CRD_GROUP}/{settings.CRD_VERSION}",
        "kind": settings.CRD_KIND,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"imageTag": image_tag},
    }
    result = api.create_namespaced_custom_object(
        settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL, body
    )
    logger.info(f"Ghost {namespace}/{name} created (imageTag={image_tag})")
    return _parse_ghost(result), True


def update_image_tag(namespace: str, name: str, image_tag: str) -> Optional[GhostResponse]:
    """Change a Ghost's image tag. Returns None if the Ghost does not exist."""
    api = _api()
    try:
        result = api.patch_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL, name,
            {"spec": {"imageTag": image_tag}},
        )
    except ApiException as e:
        if e.status == 404:
            return None
        raise
    logger.info(f"Ghost {namespace}/{name} imageTag -> {image_tag}")
    return _parse_ghost(result)


def delete_ghost(namespace: str, name: str) -> bool:
    """Delete a Ghost. Dependents are garbage-collected through owner references."""
    api = _api()
    try:
        api.delete_namespaced_custom_object(
            settings.CRD_GROUP, settings.CRD_VERSION, namespace, settings.CRD_PLURAL, name
        )
        logger.info(f"Ghost {namespace}/{name} deletion initiated")
        return True
    except ApiException as e:
        if e.status == 404:
            return False
        raise


def count_ghosts_by_phase() -> dict:
    """Count Ghosts grouped by phase."""
    ghosts = list_ghosts()
    counts = {"total": len(ghosts), "Ready": 0, "Failed": 0, "Pending": 0}
    for g in ghosts:
        if g.phase in counts:
            counts[g.phase] += 1
    return counts
