"""
Domain errors for report lifecycle and access control.

Every error carries a machine-readable ``code``, a human message and,
where one applies, the offending ``field``. Routes surface them verbatim.
"""

from typing import Dict, Optional


class CivicTrackerError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"code": self.code, "message": self.message, "field": self.field}


class UnauthenticatedError(CivicTrackerError):
    code = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(CivicTrackerError):
    code = "forbidden"
    status_code = 403


class NotFoundError(CivicTrackerError):
    code = "not_found"
    status_code = 404


class InvalidTransitionError(CivicTrackerError):
    """Requested status change is not in the lifecycle transition table."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, current_status: str, requested_status: str, allowed=None):
        allowed = list(allowed or [])
        super().__init__(
            f"Invalid status transition: {current_status} -> {requested_status}. "
            f"Allowed transitions from {current_status}: {allowed}",
            field="status",
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed


class AlreadyRatedError(CivicTrackerError):
    code = "already_rated"
    status_code = 409

    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} has already been rated", field="citizen_rating")


class NotYetResolvableError(CivicTrackerError):
    code = "not_yet_resolvable"
    status_code = 409

    def __init__(self, report_id: str, status: str):
        super().__init__(
            f"Report {report_id} is {status}; it can be rated once resolved",
            field="status",
        )


class ConcurrentModificationError(CivicTrackerError):
    """Another writer changed the report between read and write. Safe to retry."""

    code = "concurrent_modification"
    status_code = 409
    retryable = True


class IdentifierUnavailableError(CivicTrackerError):
    code = "identifier_unavailable"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Report number counter is unavailable"):
        super().__init__(message, field="report_number")


class StoreFailureError(CivicTrackerError):
    """Connectivity or constraint failure in the persistent store."""

    code = "store_failure"
    status_code = 503
    retryable = True


class InvalidInputError(CivicTrackerError):
    code = "invalid_input"
    status_code = 422
