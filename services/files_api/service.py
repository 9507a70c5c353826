"""Audio Files API - File service logic.

Orchestrates the storage gateway and the audit log for the three file
operations:
- Upload URL issuance (fresh file key + upload_url_requested audit record)
- Playback URL issuance (existence check, clamped TTL + audit record)
- Metadata lookup (object metadata merged with the earliest upload record)

Each operation is one linear request/response. Failures are terminal.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.audit import AuditAction, AuditEntry, find_earliest_upload_record, record_audit_entry
from app.config import DEFAULT_PLAYBACK_HOURS
from app.errors import NotFoundError, UpstreamError

if TYPE_CHECKING:
    from app.auth import IdentityClaim
    from app.config import Settings
    from app.schemas import UploadUrlRequest
    from app.storage import StorageGateway

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


# --- Result Types ---


@dataclass
class UploadUrlResult:
    """Result of a successful upload URL request."""

    upload_url: str
    file_key: str


@dataclass
class PlaybackUrlResult:
    """Result of a successful playback URL request."""

    playback_url: str
    expires_hours: int


@dataclass
class FileMetadataResult:
    """Object metadata merged with the declared upload details."""

    file_key: str
    size: int | None
    content_type: str | None
    uploaded_at: datetime | None
    duration_seconds: int | None = None
    file_name: str | None = None


# --- File Service ---


def generate_file_key() -> str:
    """Generate a unique file key.

    Uses UUID4 for uniqueness. Format: canonical hyphenated uuid4 (36 chars).
    """
    return str(uuid.uuid4())


def clamp_playback_hours(requested_hours: int, max_hours: int) -> int:
    """Clamp a requested playback lifetime to the configured maximum."""
    return min(requested_hours, max_hours)


def _commit(session: Session) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Audit commit failed")
        raise UpstreamError("Database", str(e)) from e


def _record(session: Session, entry: AuditEntry) -> None:
    try:
        record_audit_entry(session, entry)
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Audit insert failed for file_key=%s", entry.file_key)
        raise UpstreamError("Database", str(e)) from e
    _commit(session)


def request_upload_url(
    session: Session,
    storage: StorageGateway,
    settings: Settings,
    identity: IdentityClaim,
    request: UploadUrlRequest,
) -> UploadUrlResult:
    """Issue a presigned upload URL for a new file key.

    Args:
        session: Active database session.
        storage: Storage gateway.
        settings: Runtime settings (upload URL TTL).
        identity: Verified caller.
        request: Validated upload request.

    Returns:
        UploadUrlResult with the presigned URL and the new file key.

    Raises:
        UpstreamError: If presigning or the audit write fails.

    Note:
        The audit record is committed before this function returns.
    """
    file_key = generate_file_key()
    expires_in = settings.upload_url_expires_in

    upload_url = storage.create_upload_url(file_key, str(request.content_type), expires_in)

    _record(
        session,
        AuditEntry(
            user_id=identity.user_id,
            file_key=file_key,
            action=AuditAction.UPLOAD_URL_REQUESTED,
            file_name=request.file_name,
            content_type=str(request.content_type),
            duration_seconds=request.duration_seconds,
        ),
    )

    logger.info(
        "Upload URL issued: user_id=%s, file_key=%s, expires_in=%ds",
        identity.user_id, file_key, expires_in,
    )
    return UploadUrlResult(upload_url=upload_url, file_key=file_key)


def request_playback_url(
    session: Session,
    storage: StorageGateway,
    settings: Settings,
    identity: IdentityClaim,
    file_key: str,
    expires_hours: int = DEFAULT_PLAYBACK_HOURS,
) -> PlaybackUrlResult:
    """Issue a presigned playback URL for an existing object.

    The requested lifetime is silently clamped to settings.max_playback_hours.

    Raises:
        NotFoundError: No object exists for file_key. Nothing is audited.
        UpstreamError: Store or database failure.
    """
    hours = clamp_playback_hours(expires_hours, settings.max_playback_hours)

    if storage.get_metadata(file_key) is None:
        raise NotFoundError(file_key)

    playback_url = storage.create_playback_url(file_key, hours * SECONDS_PER_HOUR)

    _record(
        session,
        AuditEntry(
            user_id=identity.user_id,
            file_key=file_key,
            action=AuditAction.PLAYBACK_URL_REQUESTED,
            metadata={"expiresHours": hours},
        ),
    )

    logger.info(
        "Playback URL issued: user_id=%s, file_key=%s, hours=%d (requested %d)",
        identity.user_id, file_key, hours, expires_hours,
    )
    return PlaybackUrlResult(playback_url=playback_url, expires_hours=hours)


def get_file_metadata(
    session: Session,
    storage: StorageGateway,
    file_key: str,
) -> FileMetadataResult:
    """Look up object metadata plus the originally declared name and duration.

    Raises:
        NotFoundError: No object exists for file_key, even if it was audited.
        UpstreamError: Store or database failure.
    """
    metadata = storage.get_metadata(file_key)
    if metadata is None:
        raise NotFoundError(file_key)

    try:
        upload_record = find_earliest_upload_record(session, file_key)
    except SQLAlchemyError as e:
        logger.exception("Audit lookup failed for file_key=%s", file_key)
        raise UpstreamError("Database", str(e)) from e

    return FileMetadataResult(
        file_key=file_key,
        size=metadata.size,
        content_type=metadata.content_type,
        uploaded_at=metadata.last_modified,
        duration_seconds=upload_record.duration_seconds if upload_record else None,
        file_name=upload_record.file_name if upload_record else None,
    )
