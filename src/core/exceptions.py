# src/core/exceptions.py
"""Exception taxonomy shared by the engine, the orchestrator and the API."""

from typing import Any


class ConsensusEngineError(Exception):
    """Base exception with a structured error payload."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `{error, message}` response body."""
        body: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ConsensusEngineError):
    """Malformed input. Raised before any side effect happens."""

    status_code = 400
    error_code = "BAD_REQUEST"
    message = "Invalid request"


class NotFoundError(ConsensusEngineError):
    """A requested record does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class CollaboratorError(ConsensusEngineError):
    """An external collaborator (store or provider) failed.

    Recoverable: callers capture it into a per-item result instead of
    aborting a batch.
    """

    status_code = 502
    error_code = "COLLABORATOR_ERROR"
    message = "External collaborator failed"


class EvaluationError(ConsensusEngineError):
    """A recommendation could not be resolved into an outcome."""

    error_code = "EVALUATION_ERROR"
    message = "Recommendation could not be evaluated"
