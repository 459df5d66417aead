# Overview: Error taxonomy shared by services and the API layer.

"""
Every failure the transaction engine reports is one of these kinds.

The API layer renders any PosError as:
    {"error": <message>, "kind": <kind>, "details": {...}}
with the class's HTTP status. Lower-level persistence errors are NOT wrapped;
they are logged and re-raised by the service that hit them.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for domain errors surfaced to API callers."""
    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class NotFoundError(PosError):
    """Transaction, product, category or user absent."""
    kind = "not_found"
    status_code = 404


class InsufficientStockError(PosError):
    kind = "insufficient_stock"
    status_code = 409


class InvalidStateError(PosError):
    """Reversal attempted on a transaction that is not completed."""
    kind = "invalid_state"
    status_code = 409


class ValidationError(PosError, ValueError):
    """400-level input problem."""
    kind = "validation_error"
    status_code = 400


class ConflictError(PosError):
    """409-level business rule conflict (e.g., deleting a category in use)."""
    kind = "conflict"
    status_code = 409


class CodeGenerationExhaustedError(PosError):
    kind = "code_generation_exhausted"
    status_code = 503


class ConflictRetryExhaustedError(PosError):
    """Unit of work could not commit within its retry/deadline budget."""
    kind = "conflict_retry_exhausted"
    status_code = 503
