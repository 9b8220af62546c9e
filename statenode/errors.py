"""
errors.py - statenode error taxonomy.

Every failure the HTTP layer can report maps onto one of these classes.
main.py registers a single exception handler for AppError that renders
{error, code, details, instance} with the status_code carried by the class.

  ValidationError   400  bad or missing input (task title, upload payload)
  NotFound          404  referenced task id absent
  PayloadTooLarge   413  upload over the configured ceiling
  StoreUnavailable  503  shared store unreachable or timed out

Anything else is an unhandled error (500) and is rendered by the catch-all.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class PayloadTooLarge(AppError):
    status_code = 413
    code = "FILE_TOO_LARGE"


class StoreUnavailable(AppError):
    status_code = 503
    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Session store not available", **kwargs: Any):
        super().__init__(message, **kwargs)
