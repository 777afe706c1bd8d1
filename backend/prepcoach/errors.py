"""Error taxonomy shared by the domain, persistence and HTTP layers.

Every error carries the HTTP status the API answers with, so the FastAPI
handler in ``prepcoach.main`` never needs a lookup table.
"""

from typing import Any, Dict, Optional


class PrepCoachError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": type(self).__name__, "message": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(PrepCoachError):
    """Bad input shape or range; correctable by the user."""

    status_code = 400


class InvalidStateError(PrepCoachError):
    """Operation is illegal for the interview's current lifecycle state."""

    status_code = 400

    def __init__(self, message: str, current: str, required: str, reason: Optional[str] = None):
        super().__init__(message, current=current, required=required, reason=reason)
        self.current = current
        self.required = required
        self.reason = reason


class NotFoundError(PrepCoachError):
    status_code = 404


class ConflictError(PrepCoachError):
    """A concurrent write changed the document between read and update."""

    status_code = 409


class AnalyzerError(PrepCoachError):
    status_code = 502


class AnalyzerTimeoutError(AnalyzerError):
    status_code = 504


class PersistenceError(PrepCoachError):
    status_code = 500
