"""Audio Files API - Error taxonomy.

Every failure surfaced to a caller is one of four kinds. Each carries a
stable error code and a human-readable message; none is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class FileErrorCode(StrEnum):
    """Error codes returned in the JSON error body."""

    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"


@dataclass(frozen=True)
class FieldError:
    """A single invalid field in a request body or query."""

    field: str
    message: str


class FilesApiError(Exception):
    """Base exception for Files API errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class AuthenticationError(FilesApiError):
    """Missing, malformed, expired or otherwise unverifiable bearer token."""

    def __init__(self, reason: str):
        super().__init__(FileErrorCode.AUTHENTICATION_FAILED, reason)


class ValidationError(FilesApiError):
    """Malformed request body or query parameters."""

    def __init__(self, field_errors: list[FieldError]):
        self.field_errors = list(field_errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.field_errors)
        super().__init__(FileErrorCode.VALIDATION_FAILED, summary or "Invalid request")


class NotFoundError(FilesApiError):
    """No object exists in storage for the given file key."""

    def __init__(self, file_key: str):
        self.file_key = file_key
        super().__init__(FileErrorCode.FILE_NOT_FOUND, f"File with key {file_key} not found")


class UpstreamError(FilesApiError):
    """Object store or database failure other than not-found."""

    def __init__(self, dependency: str, reason: str):
        self.dependency = dependency
        self.reason = reason
        super().__init__(FileErrorCode.UPSTREAM_FAILED, f"{dependency} request failed")
