"""
Tests for the intent API's kubernetes service layer, with CustomObjectsApi mocked.
"""
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from intent_api.services import kubernetes_service as svc


def _item(namespace="team1", name="team1", image_tag="5.1.0", phase=None):
    item = {
        "apiVersion": "blog.example.com/v1",
        "kind": "Ghost",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"imageTag": image_tag},
    }
    if phase:
        item["status"] = {"phase": phase}
    return item


@pytest.fixture
def api(monkeypatch):
    mock = MagicMock()
    mock.get_namespaced_custom_object.side_effect = ApiException(status=404)
    mock.list_namespaced_custom_object.return_value = {"items": []}
    mock.create_namespaced_custom_object.side_effect = lambda g, v, ns, p, body: body
    monkeypatch.setattr(svc, "_api", lambda: mock)
    return mock


class TestCreate:

    def test_creates_new_ghost(self, api):
        ghost, created = svc.create_ghost("team1", "team1", "5.1.0")

        assert created is True
        assert (ghost.namespace, ghost.name, ghost.imageTag) == ("team1", "team1", "5.1.0")
        args, _ = api.create_namespaced_custom_object.call_args
        assert args[:4] == ("blog.example.com", "v1", "team1", "ghosts")
        assert args[4]["spec"] == {"imageTag": "5.1.0"}

    def test_existing_ghost_is_returned(self, api):
        api.get_namespaced_custom_object.side_effect = None
        api.get_namespaced_custom_object.return_value = _item(phase="Ready")

        ghost, created = svc.create_ghost("team1", "team1", "6.0.0")

        assert created is False
        assert ghost.phase == "Ready"
        assert ghost.imageTag == "5.1.0"
        api.create_namespaced_custom_object.assert_not_called()

    def test_quota_exceeded(self, api):
        api.list_namespaced_custom_object.return_value = {"items": [_item()]}

        with pytest.raises(svc.QuotaExceededError, match="1/1"):
            svc.create_ghost("team1", "staging", "5.1.0")

        api.create_namespaced_custom_object.assert_not_called()

    def test_lookup_errors_propagate(self, api):
        api.get_namespaced_custom_object.side_effect = ApiException(status=403)
        with pytest.raises(ApiException):
            svc.create_ghost("team1", "team1", "5.1.0")


class TestReadAndModify:

    def test_get_missing(self, api):
        assert svc.get_ghost("team1", "team1") is None

    def test_update_missing(self, api):
        api.patch_namespaced_custom_object.side_effect = ApiException(status=404)
        assert svc.update_image_tag("team1", "team1", "6.0.0") is None

    def test_update_patches_image_tag(self, api):
        api.patch_namespaced_custom_object.return_value = _item(image_tag="6.0.0")
        assert svc.update_image_tag("team1", "team1", "6.0.0").imageTag == "6.0.0"
        args, _ = api.patch_namespaced_custom_object.call_args
        assert args[-1] == {"spec": {"imageTag": "6.0.0"}}

    def test_delete(self, api):
        assert svc.delete_ghost("team1", "team1") is True
        api.delete_namespaced_custom_object.side_effect = ApiException(status=404)
        assert svc.delete_ghost("team1", "team1") is False

    def test_delete_errors_propagate(self, api):
        api.delete_namespaced_custom_object.side_effect = ApiException(status=500)
        with pytest.raises(ApiException):
            svc.delete_ghost("team1", "team1")

    def test_count_by_phase(self, api):
        api.list_cluster_custom_object.return_value = {"items": [
            _item(namespace="a", name="a", phase="Ready"),
            _item(namespace="b", name="b", phase="Failed"),
            _item(namespace="c", name="c"),
        ]}
        assert svc.count_ghosts_by_phase() == {"total": 3, "Ready": 1, "Failed": 1, "Pending": 1}
