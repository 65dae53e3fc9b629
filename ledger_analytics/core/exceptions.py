"""Exception classes for the analytics engine and its HTTP surface."""

from fastapi import HTTPException, status


# ── Domain errors ─────────────────────────────────
class AnalyticsError(Exception):
    """Base class for errors raised by the analytics engine."""


class InvalidRangeError(AnalyticsError):
    """A date range (or forecast horizon) is not usable, e.g. start after end."""


class UnsupportedGranularityError(AnalyticsError):
    def __init__(self, granularity: object):
        self.granularity = granularity
        super().__init__(f"Unsupported granularity: {granularity!r}")


class InsufficientDataError(AnalyticsError):
    """Not enough historical points to compute the requested metric."""


class UpstreamReadError(AnalyticsError):
    """The ledger or workspace metadata store could not be read."""


class WorkspaceNotFoundError(AnalyticsError):
    def __init__(self, workspace_id: object):
        self.workspace_id = workspace_id
        super().__init__(f"Workspace {workspace_id} not found")


# ── HTTP errors ───────────────────────────────────
class NotFoundError(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class AnalyticsUnavailableError(HTTPException):
    def __init__(self, detail: str = "Analytics temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )
