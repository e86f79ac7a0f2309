"""Shared primitives."""

from .exceptions import (
    CollaboratorError,
    ConsensusEngineError,
    EvaluationError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "CollaboratorError",
    "ConsensusEngineError",
    "EvaluationError",
    "NotFoundError",
    "ValidationError",
]
