"""
Manifest provider: baseline templates for the dependent resources.

Templates live next to this module (``templates/*.yaml``) and are decoded
into kubernetes client models. They carry shape only (access modes,
quantities, ports, default env), never tenant identity.
"""
import logging
from pathlib import Path
from typing import Optional

import yaml
from kubernetes import client

from ghost_operator.config import settings
from ghost_operator.errors import ManifestDecodeError, ManifestNotFoundError

logger = logging.getLogger("ghost-operator.manifests")

PVC_TEMPLATE = "ghost_data_pvc.yaml"
DEPLOYMENT_TEMPLATE = "ghost_deployment.yaml"
SERVICE_TEMPLATE = "ghost_service.yaml"

# kind -> (apiVersion, client model name)
KINDS = {
    "PersistentVolumeClaim": ("v1", "V1PersistentVolumeClaim"),
    "Deployment": ("apps/v1", "V1Deployment"),
    "Service": ("v1", "V1Service"),
}

_api_client: Optional[client.ApiClient] = None

# Attributes each generator writes into; a template without them is unusable.
REQUIRED_FIELDS = {
    "PersistentVolumeClaim": ("spec", "spec.resources"),
    "Deployment": ("spec", "spec.template", "spec.template.spec", "spec.template.spec.containers"),
    "Service": ("spec", "spec.ports"),
}


def _decoder() -> client.ApiClient:
    global _api_client
    if _api_client is None:
        _api_client = client.ApiClient()
    return _api_client


def _to_model(data: dict, model: str):
    # The public ApiClient.deserialize takes an HTTP response and its signature
    # differs between client releases; the dict-to-model step underneath does not.
    return _decoder()._ApiClient__deserialize(data, model)


def _missing_fields(kind: str, obj) -> list[str]:
    missing = []
    for path in REQUIRED_FIELDS[kind]:
        value = obj
        for attr in path.split("."):
            value = getattr(value, attr, None)
            if value is None:
                break
        if not value:
            missing.append(path)
    return missing


def read_manifest(path: str, base_dir: Optional[str] = None) -> bytes:
    """Read raw template bytes. Relative paths resolve against MANIFEST_DIR."""
    full = Path(base_dir or settings.MANIFEST_DIR) / path
    try:
        return full.read_bytes()
    except FileNotFoundError as e:
        raise ManifestNotFoundError(f"Manifest {full} not found") from e


def decode_manifest(kind: str, raw: bytes, source: str = "<bytes>"):
    """Decode YAML bytes into the typed client model for ``kind``."""
    if kind not in KINDS:
        raise ManifestDecodeError(f"Unsupported manifest kind '{kind}'")
    api_version, model = KINDS[kind]

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ManifestDecodeError(f"Manifest {source} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestDecodeError(f"Manifest {source} does not contain an object")
    if data.get("kind") != kind or data.get("apiVersion") != api_version:
        raise ManifestDecodeError(
            f"Manifest {source} is {data.get('apiVersion')}/{data.get('kind')}, "
            f"expected {api_version}/{kind}"
        )

    try:
        obj = _to_model(data, model)
    except (ValueError, TypeError, AttributeError) as e:
        raise ManifestDecodeError(f"Manifest {source} cannot be decoded as {kind}: {e}") from e

    missing = _missing_fields(kind, obj)
    if missing:
        raise ManifestDecodeError(f"Manifest {source} is missing {', '.join(missing)}")
    return obj


def load_template(kind: str, path: str, base_dir: Optional[str] = None):
    """
    Load a baseline template for ``kind`` from ``path``.

    Raises ManifestNotFoundError or ManifestDecodeError; both are fatal
    configuration errors and are never retried.
    """
    raw = read_manifest(path, base_dir)
    obj = decode_manifest(kind, raw, source=path)
    logger.debug(f"Loaded {kind} template from {path}")
    return obj
