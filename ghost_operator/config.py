"""
Operator configuration: all settings from env vars with sensible defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path

_PACKAGE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: str = os.environ.get("IN_CLUSTER", "auto").lower()
    REQUEST_TIMEOUT: float = float(os.environ.get("REQUEST_TIMEOUT", "30"))

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "blog.example.com")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1")
    CRD_PLURAL: str = os.environ.get("CRD_PLURAL", "ghosts")
    CRD_KIND: str = "Ghost"

    # Dependent resources
    GHOST_IMAGE_REPOSITORY: str = os.environ.get("GHOST_IMAGE_REPOSITORY", "ghost")
    GHOST_STORAGE_SIZE: str = os.environ.get("GHOST_STORAGE_SIZE", "1Gi")
    # 0 lets the cluster allocate a node port per Service
    GHOST_NODE_PORT: int = int(os.environ.get("GHOST_NODE_PORT", "30001"))
    MANIFEST_DIR: str = os.environ.get("MANIFEST_DIR", str(_PACKAGE_DIR / "templates"))

    # Scheduling
    RETRY_DELAY: int = int(os.environ.get("RETRY_DELAY", "15"))
    RESYNC_INTERVAL: int = int(os.environ.get("RESYNC_INTERVAL", "300"))
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "4"))

    # Observability
    REDIS_URL: str = os.environ.get("REDIS_URL", "")
    METRICS_PORT: int = int(os.environ.get("METRICS_PORT", "9090"))

    @property
    def api_version(self) -> str:
        return f"{self.CRD_GROUP}/{self.CRD_VERSION}"


settings = Settings()
