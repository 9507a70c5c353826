"""Audio Files API - Explicit request validation.

Validation functions return a ValidationResult (ok | list of field errors)
instead of raising, so callers decide how to report failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import pydantic

from app.errors import FieldError, ValidationError
from app.schemas import AudioContentType, PlaybackUrlQuery, UploadUrlRequest

T = TypeVar("T")

# Friendlier messages for the constraints users hit most often
_MESSAGE_OVERRIDES = {
    ("fileName", "string_pattern_mismatch"): (
        "fileName must contain only alphanumeric characters, dots, hyphens, and underscores"
    ),
    ("contentType", "enum"): "contentType must be one of: "
    + ", ".join(ct.value for ct in AudioContentType),
}


@dataclass
class ValidationResult(Generic[T]):
    """Outcome of validating one request payload."""

    value: T | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> T:
        """Return the validated value, or raise ValidationError."""
        if self.errors:
            raise ValidationError(self.errors)
        if self.value is None:
            raise ValueError("ValidationResult holds neither a value nor errors")
        return self.value


def _field_errors(exc: pydantic.ValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"]) or "body"
        if err["type"] == "extra_forbidden":
            message = f"property {name} should not exist"
        else:
            message = _MESSAGE_OVERRIDES.get((name, err["type"]), err["msg"])
        errors.append(FieldError(field=name, message=message))
    return errors


def validate_upload_request(payload: Any) -> ValidationResult[UploadUrlRequest]:
    """Validate an upload-URL request body.

    Args:
        payload: Decoded JSON body.

    Returns:
        ValidationResult holding an UploadUrlRequest or field errors.
    """
    if not isinstance(payload, dict):
        return ValidationResult(errors=[FieldError("body", "Request body must be a JSON object")])
    try:
        return ValidationResult(value=UploadUrlRequest.model_validate(payload))
    except pydantic.ValidationError as e:
        return ValidationResult(errors=_field_errors(e))


def validate_playback_query(expires_hours: str | int | None) -> ValidationResult[PlaybackUrlQuery]:
    """Validate playback-URL query parameters.

    Args:
        expires_hours: Raw expiresHours value, or None when omitted.

    Returns:
        ValidationResult holding a PlaybackUrlQuery or field errors.
    """
    raw = {} if expires_hours is None else {"expiresHours": expires_hours}
    try:
        return ValidationResult(value=PlaybackUrlQuery.model_validate(raw))
    except pydantic.ValidationError as e:
        return ValidationResult(errors=_field_errors(e))
