"""
Cluster state store: the only place the operator talks to the k8s API.

``ClusterStore`` is the contract the convergence engine depends on:
get / list / create / update, all synchronous. ``KubernetesStore`` backs it
with the official client; tests back it with an in-memory fake.

The observed-state readers at the bottom turn store lookups into
"what exists for this Ghost right now".
"""
import logging
from typing import Optional, Protocol

import kubernetes
from kubernetes import client, config

from ghost_operator import desired
from ghost_operator.config import settings
from ghost_operator.models import Ghost

logger = logging.getLogger("ghost-operator.store")


class ClusterStore(Protocol):
    def get(self, kind: str, namespace: str, name: str): ...

    def list(self, kind: str, namespace: str, label_selector: str) -> list: ...

    def create(self, obj): ...

    def update(self, obj): ...


_MODEL_KINDS = {
    client.V1PersistentVolumeClaim: "PersistentVolumeClaim",
    client.V1Deployment: "Deployment",
    client.V1Service: "Service",
}


def kind_of(obj) -> str:
    """Kind of a client model. List items come back without ``kind`` set."""
    return _MODEL_KINDS.get(type(obj)) or obj.kind


# ---------------------------------------------------------------------------
# Kubernetes client helpers
# ---------------------------------------------------------------------------

_k8s_loaded = False


def _ensure_k8s():
    """Load kubeconfig exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER == "true":
        config.load_incluster_config()
    elif settings.IN_CLUSTER == "false":
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    else:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def core_api() -> client.CoreV1Api:
    _ensure_k8s()
    return client.CoreV1Api()


def apps_api() -> client.AppsV1Api:
    _ensure_k8s()
    return client.AppsV1Api()


def custom_api() -> client.CustomObjectsApi:
    _ensure_k8s()
    return client.CustomObjectsApi()


class KubernetesStore:
    """ClusterStore over the live API server. A 404 on get becomes None."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT

    def get(self, kind: str, namespace: str, name: str):
        try:
            if kind == "PersistentVolumeClaim":
                return core_api().read_namespaced_persistent_volume_claim(
                    name, namespace, _request_timeout=self.timeout)
            if kind == "Service":
                return core_api().read_namespaced_service(
                    name, namespace, _request_timeout=self.timeout)
            if kind == "Deployment":
                return apps_api().read_namespaced_deployment(
                    name, namespace, _request_timeout=self.timeout)
            if kind == settings.CRD_KIND:
                return custom_api().get_namespaced_custom_object(
                    settings.CRD_GROUP, settings.CRD_VERSION, namespace,
                    settings.CRD_PLURAL, name, _request_timeout=self.timeout)
        except kubernetes.client.ApiException as e:
            if e.status == 404:
                return None
            raise
        raise ValueError(f"Unsupported kind '{kind}'")

    def list(self, kind: str, namespace: str, label_selector: str) -> list:
        if kind == "Deployment":
            result = apps_api().list_namespaced_deployment(
                namespace, label_selector=label_selector, _request_timeout=self.timeout)
        elif kind == "PersistentVolumeClaim":
            result = core_api().list_namespaced_persistent_volume_claim(
                namespace, label_selector=label_selector, _request_timeout=self.timeout)
        elif kind == "Service":
            result = core_api().list_namespaced_service(
                namespace, label_selector=label_selector, _request_timeout=self.timeout)
        else:
            raise ValueError(f"Unsupported kind '{kind}'")
        return list(result.items)

    def create(self, obj):
        namespace, kind = obj.metadata.namespace, kind_of(obj)
        if kind == "PersistentVolumeClaim":
            return core_api().create_namespaced_persistent_volume_claim(
                namespace, obj, _request_timeout=self.timeout)
        if kind == "Service":
            return core_api().create_namespaced_service(
                namespace, obj, _request_timeout=self.timeout)
        if kind == "Deployment":
            return apps_api().create_namespaced_deployment(
                namespace, obj, _request_timeout=self.timeout)
        raise ValueError(f"Unsupported kind '{kind}'")

    def update(self, obj):
        # replace_* carries metadata.resourceVersion, so a stale object
        # fails with 409 Conflict instead of overwriting a newer one.
        namespace, name, kind = obj.metadata.namespace, obj.metadata.name, kind_of(obj)
        if kind == "Deployment":
            return apps_api().replace_namespaced_deployment(
                name, namespace, obj, _request_timeout=self.timeout)
        if kind == "PersistentVolumeClaim":
            return core_api().replace_namespaced_persistent_volume_claim(
                name, namespace, obj, _request_timeout=self.timeout)
        if kind == "Service":
            return core_api().replace_namespaced_service(
                name, namespace, obj, _request_timeout=self.timeout)
        raise ValueError(f"Unsupported kind '{kind}'")


# ---------------------------------------------------------------------------
# Observed-state readers
# ---------------------------------------------------------------------------

def observed_pvc(store: ClusterStore, ghost: Ghost):
    return store.get("PersistentVolumeClaim", ghost.namespace, desired.pvc_name(ghost))


def observed_service(store: ClusterStore, ghost: Ghost):
    return store.get("Service", ghost.namespace, desired.service_name(ghost))


def _age_key(obj):
    ts = obj.metadata.creation_timestamp
    # Objects without a timestamp sort after every timestamped one
    return (ts is None, ts or "", obj.metadata.name or "")


def observed_deployment(store: ClusterStore, ghost: Ghost):
    """
    The Deployment serving this Ghost, found by its ``app`` label.

    Names are generated by the API server, so identity is the label. If a
    race left more than one behind, the oldest (then lowest name) wins so
    every reconcile picks the same one.
    """
    matches = store.list("Deployment", ghost.namespace, desired.label_selector(ghost))
    if not matches:
        return None
    if len(matches) > 1:
        matches = sorted(matches, key=_age_key)
        logger.warning(
            f"{len(matches)} Deployments match {desired.label_selector(ghost)} in "
            f"{ghost.namespace}; using oldest {matches[0].metadata.name}"
        )
    return matches[0]
