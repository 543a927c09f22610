"""
Desired-state generation for the resources a Ghost owns.

Every function here is pure: the same Ghost always yields equal objects,
which is what makes diffing against observed state stable.
"""
from kubernetes import client

from ghost_operator.config import settings
from ghost_operator.errors import ManifestDecodeError
from ghost_operator.manifests import (
    DEPLOYMENT_TEMPLATE,
    PVC_TEMPLATE,
    SERVICE_TEMPLATE,
    load_template,
)
from ghost_operator.models import Ghost

PVC_NAME_PREFIX = "ghost-data-pvc-"
DEPLOYMENT_NAME_PREFIX = "ghost-deployment-"
SERVICE_NAME_PREFIX = "ghost-service-"

CONTAINER_NAME = "ghost"
DATA_VOLUME_NAME = "ghost-data"
MANAGED_BY = "ghost-operator"
LABEL_VALUE_MAX = 63


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def pvc_name(ghost: Ghost) -> str:
    return PVC_NAME_PREFIX + ghost.instance


def service_name(ghost: Ghost) -> str:
    return SERVICE_NAME_PREFIX + ghost.instance


def deployment_generate_name(ghost: Ghost) -> str:
    return f"{DEPLOYMENT_NAME_PREFIX}{ghost.instance}-"


def app_label(ghost: Ghost) -> str:
    return f"ghost-{ghost.instance}"


def selector_labels(ghost: Ghost) -> dict[str, str]:
    return {"app": app_label(ghost)}


def label_selector(ghost: Ghost) -> str:
    """``app=ghost-<instance>`` in list-call syntax."""
    return ",".join(f"{k}={v}" for k, v in selector_labels(ghost).items())


def resource_labels(ghost: Ghost) -> dict[str, str]:
    labels = selector_labels(ghost)
    labels.update({
        "app.kubernetes.io/name": "ghost",
        "app.kubernetes.io/instance": ghost.name if len(ghost.name) <= LABEL_VALUE_MAX else ghost.instance,
        "app.kubernetes.io/managed-by": MANAGED_BY,
    })
    return labels


def image_for(ghost: Ghost) -> str:
    # The tag is used verbatim; validating it is the caller's business.
    return f"{settings.GHOST_IMAGE_REPOSITORY}:{ghost.image_tag}"


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

def desired_pvc(ghost: Ghost) -> client.V1PersistentVolumeClaim:
    pvc = load_template("PersistentVolumeClaim", PVC_TEMPLATE)
    pvc.metadata = client.V1ObjectMeta(
        name=pvc_name(ghost),
        namespace=ghost.namespace,
        labels=resource_labels(ghost),
    )
    pvc.spec.access_modes = ["ReadWriteOnce"]
    pvc.spec.resources.requests = {"storage": settings.GHOST_STORAGE_SIZE}
    return pvc


def desired_deployment(ghost: Ghost) -> client.V1Deployment:
    deployment = load_template("Deployment", DEPLOYMENT_TEMPLATE)
    deployment.metadata = client.V1ObjectMeta(
        generate_name=deployment_generate_name(ghost),
        namespace=ghost.namespace,
        labels=resource_labels(ghost),
    )

    spec = deployment.spec
    spec.replicas = 1
    spec.selector = client.V1LabelSelector(match_labels=selector_labels(ghost))
    spec.template.metadata = client.V1ObjectMeta(labels=resource_labels(ghost))

    container = primary_container(deployment)
    if container is None:
        raise ManifestDecodeError(f"{DEPLOYMENT_TEMPLATE} has no '{CONTAINER_NAME}' container")
    container.image = image_for(ghost)

    volume = data_volume(deployment)
    if volume is None:
        raise ManifestDecodeError(
            f"{DEPLOYMENT_TEMPLATE} has no '{DATA_VOLUME_NAME}' persistentVolumeClaim volume"
        )
    volume.persistent_volume_claim.claim_name = pvc_name(ghost)
    return deployment


def desired_service(ghost: Ghost) -> client.V1Service:
    service = load_template("Service", SERVICE_TEMPLATE)
    service.metadata = client.V1ObjectMeta(
        name=service_name(ghost),
        namespace=ghost.namespace,
        labels=resource_labels(ghost),
    )
    service.spec.selector = selector_labels(ghost)
    for port in service.spec.ports:
        port.node_port = settings.GHOST_NODE_PORT or None
    return service


# ---------------------------------------------------------------------------
# Accessors shared with the diff / convergence code
# ---------------------------------------------------------------------------

def primary_container(deployment: client.V1Deployment):
    """The ``ghost`` container of a Deployment, or None."""
    pod_spec = deployment.spec.template.spec if deployment.spec and deployment.spec.template else None
    for container in (pod_spec.containers if pod_spec else None) or []:
        if container.name == CONTAINER_NAME:
            return container
    return None


def data_volume(deployment: client.V1Deployment):
    """The PVC-backed data volume of a Deployment, or None."""
    pod_spec = deployment.spec.template.spec if deployment.spec and deployment.spec.template else None
    for volume in (pod_spec.volumes if pod_spec else None) or []:
        if volume.name == DATA_VOLUME_NAME and volume.persistent_volume_claim:
            return volume
    return None
