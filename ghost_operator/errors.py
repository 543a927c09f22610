"""
Error taxonomy for the Ghost operator.

NotFound is never raised from here: the store turns a 404 into ``None``
and the convergence engine treats that as "needs creation".
"""
from typing import Optional


class GhostOperatorError(Exception):
    """Base class for operator errors."""

    retryable = True


class ManifestError(GhostOperatorError):
    """A packaged template is unusable. Indicates a deployment defect."""

    retryable = False


class ManifestNotFoundError(ManifestError):
    pass


class ManifestDecodeError(ManifestError):
    pass


class OwnershipError(GhostOperatorError):
    """The owner's type metadata cannot be resolved."""

    retryable = False


class InvalidGhostError(GhostOperatorError):
    """The Ghost resource cannot be turned into desired state."""

    retryable = False


class ConvergenceError(GhostOperatorError):
    """
    A read, create or update failed while converging one dependent kind.

    The original exception is kept verbatim in ``cause`` (and as
    ``__cause__`` when raised with ``from``).
    """

    def __init__(self, kind: str, operation: str, cause: Exception):
        self.kind = kind
        self.operation = operation
        self.cause = cause
        super().__init__(f"{kind} {operation} failed: {cause}")

    @property
    def retryable(self) -> bool:
        return getattr(self.cause, "retryable", True)

    @property
    def status(self) -> Optional[int]:
        """HTTP status of the underlying API error, if any."""
        return getattr(self.cause, "status", None)
