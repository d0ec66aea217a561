"""Exception types raised by riskaudit services."""

from __future__ import annotations


class RiskAuditError(Exception):
    """Base class for all riskaudit errors."""


class NotFoundError(RiskAuditError):
    """An aggregate, photo or related row does not exist (or is not visible to the caller)."""


class InspectionValidationError(RiskAuditError):
    """A create/update request was rejected before touching the database."""


class InvalidTransitionError(RiskAuditError):
    """An inspection status change is not allowed by the lifecycle."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move inspection from {current} to {target}")
        self.current = current
        self.target = target


class AnalyzerError(RiskAuditError):
    """The image analyzer failed: bad input, unparseable output or service unavailable."""


class ImageStoreError(RiskAuditError):
    """An image could not be written to or resolved in the store."""


class PathTraversalError(ImageStoreError):
    """A requested path resolved outside the tenant's namespace."""


class JobQueueClosedError(RiskAuditError):
    """The job queue is shutting down and no longer accepts jobs."""
