"""
Typed view of a Ghost custom resource.
"""
import hashlib
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ghost_operator.errors import InvalidGhostError

# Longest suffix that keeps every derived name within 63 characters:
# "ghost-deployment-" + instance + "-" stays under the 58-character
# generateName base the API server keeps intact.
MAX_INSTANCE_LENGTH = 40
_HASH_LENGTH = 8


class GhostSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    image_tag: str = Field(..., alias="imageTag", min_length=1)


class Ghost(BaseModel):
    """One tenant's blog instance, as read from the cluster."""

    model_config = ConfigDict(frozen=True)

    api_version: str
    kind: str
    name: str
    namespace: str
    uid: Optional[str] = None
    spec: GhostSpec

    @property
    def image_tag(self) -> str:
        return self.spec.image_tag

    @property
    def instance(self) -> str:
        """
        Suffix shared by every dependent resource name and the ``app`` label.

        A Ghost named after its namespace keeps the plain ``<namespace>``
        suffix; any other Ghost in that namespace gets ``<namespace>-<name>``.
        Suffixes longer than MAX_INSTANCE_LENGTH are cut and end in a short
        hash of the full suffix, so distinct Ghosts stay distinct.
        """
        if self.name == self.namespace:
            suffix = self.namespace
        else:
            suffix = f"{self.namespace}-{self.name}"
        if len(suffix) <= MAX_INSTANCE_LENGTH:
            return suffix
        digest = hashlib.sha256(suffix.encode()).hexdigest()[:_HASH_LENGTH]
        head = suffix[:MAX_INSTANCE_LENGTH - _HASH_LENGTH - 1].rstrip("-")
        return f"{head}-{digest}"

    @classmethod
    def from_resource(cls, body: dict) -> "Ghost":
        """Build a Ghost from a raw custom object dict (kopf body or API response)."""
        metadata = body.get("metadata", {}) or {}
        try:
            return cls(
                api_version=body.get("apiVersion", ""),
                kind=body.get("kind", ""),
                name=metadata.get("name", ""),
                namespace=metadata.get("namespace", ""),
                uid=metadata.get("uid"),
                spec=GhostSpec.model_validate(body.get("spec", {}) or {}),
            )
        except ValidationError as e:
            raise InvalidGhostError(
                f"Ghost {metadata.get('namespace')}/{metadata.get('name')} is invalid: {e}"
            ) from e
