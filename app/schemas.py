"""Audio Files API - Pydantic models for API validation.

Request models are validated explicitly through app.validation rather than
by the web framework, so the same contract applies to any caller.
JSON field names are camelCase on the wire.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from app.config import DEFAULT_PLAYBACK_HOURS

FILE_NAME_PATTERN = r"^[A-Za-z0-9._-]+$"

MIN_DURATION_SECONDS = 1
MAX_DURATION_SECONDS = 7200  # 2 hours

MIN_EXPIRES_HOURS = 1
MAX_EXPIRES_HOURS = 168  # 7 days


class AudioContentType(StrEnum):
    """Audio MIME types accepted for upload."""

    M4A = "audio/m4a"
    WAV = "audio/wav"
    MP4 = "audio/mp4"


# --- Request Models ---


class UploadUrlRequest(BaseModel):
    """Request payload for POST /v1/files/upload-url."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel)

    file_name: StrictStr = Field(
        ...,
        pattern=FILE_NAME_PATTERN,
        description="Original file name (letters, digits, dot, hyphen, underscore)",
    )
    content_type: AudioContentType = Field(..., description="Audio MIME type")
    duration_seconds: StrictInt = Field(
        ...,
        ge=MIN_DURATION_SECONDS,
        le=MAX_DURATION_SECONDS,
        description="Declared audio duration in seconds",
    )

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def integral_float_to_int(cls, value):
        # JSON numbers like 180.0 are integers; "180", 180.5 and booleans are not
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


class PlaybackUrlQuery(BaseModel):
    """Query parameters for GET /v1/files/playback-url/{fileKey}."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel)

    expires_hours: int = Field(
        default=DEFAULT_PLAYBACK_HOURS,
        ge=MIN_EXPIRES_HOURS,
        le=MAX_EXPIRES_HOURS,
        description="Requested playback URL lifetime in hours",
    )


# --- Response Models ---


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadUrlResponse(_ResponseModel):
    """Response for POST /v1/files/upload-url."""

    upload_url: str = Field(..., description="Presigned PUT URL")
    file_key: str = Field(..., description="Storage key for the new object")


class PlaybackUrlResponse(_ResponseModel):
    """Response for GET /v1/files/playback-url/{fileKey}."""

    playback_url: str = Field(..., description="Presigned GET URL")


class FileMetadataResponse(_ResponseModel):
    """Response for GET /v1/files/{fileKey}/metadata."""

    file_key: str = Field(..., description="Storage key")
    size: int | None = Field(default=None, description="Object size in bytes")
    content_type: str | None = Field(default=None, description="Stored content type")
    uploaded_at: datetime | None = Field(default=None, description="Last-modified time")
    duration_seconds: int | None = Field(default=None, description="Declared duration")
    file_name: str | None = Field(default=None, description="Declared file name")


class FieldErrorResponse(BaseModel):
    """One invalid field."""

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Response for failed operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    error_code: str = Field(..., description="Error taxonomy code")
    error_message: str = Field(..., description="Human-readable error description")
    errors: list[FieldErrorResponse] | None = Field(
        default=None, description="Per-field validation errors"
    )


__all__ = [
    "AudioContentType",
    "UploadUrlRequest",
    "PlaybackUrlQuery",
    "UploadUrlResponse",
    "PlaybackUrlResponse",
    "FileMetadataResponse",
    "FieldErrorResponse",
    "ErrorResponse",
]
