from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """
    Base class for expected failures raised by the inspection engine.

    Each subclass carries a machine-readable ``error_type`` and the HTTP status the
    API layer reports it with. Services raise these; routes never build them by hand.
    """

    error_type = "engine_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(EngineError):
    """Malformed input, e.g. a missing lot or item key."""

    error_type = "validation_error"
    status_code = 400


class NotFound(EngineError):
    """A referenced lot, item, template or assignment does not exist."""

    error_type = "not_found"
    status_code = 404


class Conflict(EngineError):
    """Duplicate active assignment or a stale versioned write."""

    error_type = "conflict"
    status_code = 409


class PersistenceFailure(EngineError):
    """The underlying store was unreachable or rejected the write."""

    error_type = "persistence_failure"
    status_code = 503

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, details=str(cause) if cause is not None else None)
        self.cause = cause


class PartialBatchFailure(EngineError):
    """A subset of a batch save failed; ``failures`` maps item ids to error text."""

    error_type = "partial_batch_failure"
    status_code = 207

    def __init__(self, message: str, success_count: int, failures: dict[str, str]) -> None:
        super().__init__(message, details=failures)
        self.success_count = success_count
        self.failures = failures
