"""
Configuration module: all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "blog.example.com")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1")
    CRD_PLURAL: str = os.environ.get("CRD_PLURAL", "ghosts")
    CRD_KIND: str = "Ghost"

    # Platform
    MAX_GHOSTS_PER_NAMESPACE: int = int(os.environ.get("MAX_GHOSTS_PER_NAMESPACE", "1"))

    # Rate limiting
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "10/minute")

    # Events
    REDIS_URL: str = os.environ.get("REDIS_URL", "")

    # API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
