"""
Pytest configuration and fixtures.

FakeClusterStore implements the get / list / create / update contract
over a dict, so the convergence core runs without a cluster.
"""
import copy
from datetime import datetime, timedelta, timezone

import pytest
from kubernetes.client import ApiException

from ghost_operator.store import kind_of

GHOST_API_VERSION = "blog.example.com/v1"


class FakeClusterStore:
    """In-memory cluster: generated names, uids, resourceVersions and 409s."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.failures = {}
        self._counter = 0
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # -- test helpers ------------------------------------------------------

    def fail(self, operation: str, kind: str, exc: Exception):
        """Make the next matching call raise ``exc``."""
        self.failures[(operation, kind)] = exc

    def put_ghost(self, body: dict):
        meta = body["metadata"]
        self.objects[("Ghost", meta["namespace"], meta["name"])] = copy.deepcopy(body)

    def seed(self, obj):
        """Insert an object as if someone else had created it."""
        return self._store_new(obj)

    def peek(self, kind: str, namespace: str, name: str):
        return self.objects.get((kind, namespace, name))

    def all(self, kind: str) -> list:
        return [obj for (k, _, _), obj in self.objects.items() if k == kind]

    def count(self, operation: str, kind: str = None) -> int:
        return sum(1 for op, k, _ in self.calls if op == operation and (kind is None or k == kind))

    # -- ClusterStore contract ---------------------------------------------

    def _maybe_fail(self, operation: str, kind: str):
        exc = self.failures.pop((operation, kind), None)
        if exc is not None:
            raise exc

    def get(self, kind, namespace, name):
        self.calls.append(("get", kind, name))
        self._maybe_fail("get", kind)
        obj = self.objects.get((kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def list(self, kind, namespace, label_selector):
        self.calls.append(("list", kind, label_selector))
        self._maybe_fail("list", kind)
        wanted = dict(part.split("=", 1) for part in label_selector.split(",") if part)
        matches = []
        for (k, ns, _), obj in self.objects.items():
            if k != kind or ns != namespace:
                continue
            labels = obj.metadata.labels or {}
            if all(labels.get(key) == value for key, value in wanted.items()):
                matches.append(copy.deepcopy(obj))
        return matches

    def create(self, obj):
        kind = kind_of(obj)
        self.calls.append(("create", kind, obj.metadata.name or obj.metadata.generate_name))
        self._maybe_fail("create", kind)
        return copy.deepcopy(self._store_new(obj))

    def update(self, obj):
        kind = kind_of(obj)
        meta = obj.metadata
        self.calls.append(("update", kind, meta.name))
        self._maybe_fail("update", kind)
        key = (kind, meta.namespace, meta.name)
        current = self.objects.get(key)
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if current.metadata.resource_version != meta.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(obj)
        stored.metadata.resource_version = str(int(meta.resource_version) + 1)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def _store_new(self, obj):
        kind = kind_of(obj)
        stored = copy.deepcopy(obj)
        meta = stored.metadata
        self._counter += 1
        if not meta.name:
            meta.name = f"{meta.generate_name}{self._counter:05d}"
        key = (kind, meta.namespace, meta.name)
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        meta.uid = meta.uid or f"uid-{self._counter}"
        meta.resource_version = meta.resource_version or "1"
        if meta.creation_timestamp is None:
            meta.creation_timestamp = self._epoch + timedelta(seconds=self._counter)
        self.objects[key] = stored
        return stored


class RecordingRecorder:
    def __init__(self):
        self.events = []

    def record(self, subject, type, reason, message):
        self.events.append((f"{subject.namespace}/{subject.name}", type, reason, message))

    def reasons(self) -> list:
        return [reason for _, _, reason, _ in self.events]


def ghost_body(namespace="team1", name=None, image_tag="5.1.0", uid=None) -> dict:
    name = name or namespace
    return {
        "apiVersion": GHOST_API_VERSION,
        "kind": "Ghost",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid if uid is not None else f"ghost-uid-{namespace}-{name}",
        },
        "spec": {"imageTag": image_tag},
    }


@pytest.fixture
def fake_store():
    return FakeClusterStore()


@pytest.fixture
def recorder():
    return RecordingRecorder()


@pytest.fixture
def make_ghost_body():
    return ghost_body
