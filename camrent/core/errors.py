# camrent/core/errors.py
"""Service layer errors, each carrying the HTTP status it maps to."""
from typing import Optional


class ServiceError(Exception):
    """Base error for service-layer failures."""
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Bad or missing input, caught before any write."""
    status_code = 400


class AuthorizationError(ServiceError):
    """Acting on a record owned by somebody else."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Business rule failure: unavailable dates, ineligible rental, wrong status."""
    status_code = 409


class PartialFailureError(ServiceError):
    """The extension row was written but its payment was not."""
    status_code = 207

    def __init__(self, message: str, extension_id: Optional[str] = None):
        super().__init__(message)
        self.extension_id = extension_id


class SyncError(ServiceError):
    """A dependent write failed and the primary write was undone."""
    status_code = 500
