"""
Pydantic models for API request/response validation.
"""
from pydantic import BaseModel, Field
from typing import Optional, List

_DNS_LABEL = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class GhostCreateRequest(BaseModel):
    """Request to create a Ghost blog in a tenant namespace."""
    namespace: str = Field(
        ...,
        min_length=1,
        max_length=40,
        pattern=_DNS_LABEL,
        description="Tenant namespace the blog lives in",
        examples=["team1"],
    )
    name: Optional[str] = Field(
        default=None,
        max_length=40,
        pattern=_DNS_LABEL,
        description="Ghost resource name (defaults to the namespace)",
    )
    imageTag: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Tag of the ghost container image",
        examples=["5.1.0"],
    )


class GhostUpdateRequest(BaseModel):
    imageTag: str = Field(..., min_length=1, max_length=128)


class GhostCondition(BaseModel):
    type: str
    status: str
    reason: str = ""
    message: str = ""
    lastTransitionTime: Optional[str] = None


class GhostResponse(BaseModel):
    """Ghost details as reported by the cluster."""
    name: str
    namespace: str
    imageTag: str
    phase: str = "Pending"
    message: Optional[str] = None
    lastReconciled: Optional[str] = None
    conditions: List[GhostCondition] = []


class GhostListResponse(BaseModel):
    ghosts: List[GhostResponse]
    total: int


class GhostEvent(BaseModel):
    timestamp: str = ""
    type: str = ""
    reason: str = ""
    message: str = ""


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"
