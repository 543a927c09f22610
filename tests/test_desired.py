"""
Tests for desired-state generation.
"""
import pytest

from ghost_operator import desired
from ghost_operator.config import Settings
from ghost_operator.errors import ManifestDecodeError
from ghost_operator.manifests import DEPLOYMENT_TEMPLATE, load_template
from ghost_operator.models import Ghost
from intent_api.models import GhostCreateRequest


@pytest.fixture
def ghost(make_ghost_body):
    return Ghost.from_resource(make_ghost_body(namespace="team1", image_tag="5.1.0"))


def test_pvc(ghost):
    pvc = desired.desired_pvc(ghost)
    assert pvc.metadata.name == "ghost-data-pvc-team1"
    assert pvc.metadata.namespace == "team1"
    assert pvc.spec.access_modes == ["ReadWriteOnce"]
    assert pvc.spec.resources.requests == {"storage": "1Gi"}


def test_deployment(ghost):
    deployment = desired.desired_deployment(ghost)
    assert deployment.metadata.name is None
    assert deployment.metadata.generate_name == "ghost-deployment-team1-"
    assert deployment.metadata.labels["app"] == "ghost-team1"
    assert deployment.spec.replicas == 1
    assert deployment.spec.selector.match_labels == {"app": "ghost-team1"}
    assert deployment.spec.template.metadata.labels["app"] == "ghost-team1"

    container = desired.primary_container(deployment)
    assert container.image == "ghost:5.1.0"
    assert container.ports[0].container_port == 2368
    assert desired.data_volume(deployment).persistent_volume_claim.claim_name == "ghost-data-pvc-team1"


def test_service(ghost):
    service = desired.desired_service(ghost)
    assert service.metadata.name == "ghost-service-team1"
    assert service.spec.selector == {"app": "ghost-team1"}
    assert service.spec.type == "NodePort"
    port = service.spec.ports[0]
    assert (port.port, port.target_port, port.node_port) == (80, 2368, 30001)


def test_node_port_can_be_left_to_the_cluster(ghost, monkeypatch):
    monkeypatch.setattr(desired, "settings", Settings(GHOST_NODE_PORT=0))
    service = desired.desired_service(ghost)
    assert service.spec.ports[0].node_port is None


def test_image_tag_used_verbatim(make_ghost_body):
    ghost = Ghost.from_resource(make_ghost_body(image_tag="latest@sha256:abc"))
    assert desired.primary_container(desired.desired_deployment(ghost)).image == "ghost:latest@sha256:abc"


@pytest.mark.parametrize("generate", [
    desired.desired_pvc, desired.desired_deployment, desired.desired_service,
])
def test_generation_is_deterministic(ghost, generate):
    assert generate(ghost) == generate(ghost)


def test_namespaces_do_not_overlap(make_ghost_body):
    a = Ghost.from_resource(make_ghost_body(namespace="a"))
    b = Ghost.from_resource(make_ghost_body(namespace="b"))
    assert desired.pvc_name(a) == "ghost-data-pvc-a"
    assert desired.pvc_name(b) == "ghost-data-pvc-b"
    assert desired.label_selector(a) == "app=ghost-a"
    assert desired.label_selector(b) == "app=ghost-b"
    assert desired.service_name(a) != desired.service_name(b)


def test_second_ghost_in_namespace_gets_distinct_names(make_ghost_body):
    first = Ghost.from_resource(make_ghost_body(namespace="team1"))
    second = Ghost.from_resource(make_ghost_body(namespace="team1", name="staging"))
    assert desired.pvc_name(second) == "ghost-data-pvc-team1-staging"
    assert desired.service_name(second) == "ghost-service-team1-staging"
    assert desired.app_label(second) == "ghost-team1-staging"
    assert desired.app_label(first) != desired.app_label(second)


def test_standard_labels(ghost):
    labels = desired.resource_labels(ghost)
    assert labels["app.kubernetes.io/instance"] == "team1"
    assert labels["app.kubernetes.io/managed-by"] == "ghost-operator"


def _load_from(tmp_path):
    def load(kind, path):
        return load_template(kind, path, base_dir=str(tmp_path))
    return load


def test_deployment_template_without_data_volume(ghost, tmp_path, monkeypatch):
    (tmp_path / DEPLOYMENT_TEMPLATE).write_text(
        "apiVersion: apps/v1\n"
        "kind: Deployment\n"
        "spec:\n"
        "  selector: {}\n"
        "  template:\n"
        "    spec:\n"
        "      containers:\n"
        "        - name: ghost\n"
        "          image: ghost:latest\n"
    )
    monkeypatch.setattr(desired, "load_template", _load_from(tmp_path))
    with pytest.raises(ManifestDecodeError, match="ghost-data"):
        desired.desired_deployment(ghost)


def test_deployment_template_without_ghost_container(ghost, tmp_path, monkeypatch):
    (tmp_path / DEPLOYMENT_TEMPLATE).write_text(
        "apiVersion: apps/v1\n"
        "kind: Deployment\n"
        "spec:\n"
        "  selector: {}\n"
        "  template:\n"
        "    spec:\n"
        "      containers:\n"
        "        - name: sidecar\n"
        "          image: busybox\n"
    )
    monkeypatch.setattr(desired, "load_template", _load_from(tmp_path))
    with pytest.raises(ManifestDecodeError, match="'ghost' container"):
        desired.desired_deployment(ghost)


def test_longest_accepted_names_fit_kubernetes_limits(make_ghost_body):
    req = GhostCreateRequest(namespace="a" * 40, name="b" * 40, imageTag="5.1.0")
    ghost = Ghost.from_resource(make_ghost_body(namespace=req.namespace, name=req.name))

    assert len(desired.app_label(ghost)) <= 63
    assert len(desired.service_name(ghost)) <= 63
    assert len(desired.pvc_name(ghost)) <= 63
    # the API server keeps up to 58 characters of a generateName base
    assert len(desired.deployment_generate_name(ghost)) <= 58
    assert all(len(v) <= 63 for v in desired.resource_labels(ghost).values())
    assert desired.service_name(ghost)[-1].isalnum()


def test_shortened_names_stay_distinct(make_ghost_body):
    a = Ghost.from_resource(make_ghost_body(namespace="n" * 40, name="blog-" + "x" * 35))
    b = Ghost.from_resource(make_ghost_body(namespace="n" * 40, name="blog-" + "y" * 35))
    assert desired.app_label(a) != desired.app_label(b)
    assert desired.app_label(a) == desired.app_label(
        Ghost.from_resource(make_ghost_body(namespace="n" * 40, name="blog-" + "x" * 35)))
