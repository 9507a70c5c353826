"""Audio Files API - Audit log primitives.

Append-only: records are inserted and queried, never updated or deleted.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import FileAudit


class AuditAction(StrEnum):
    """Actions recorded in the audit log."""

    UPLOAD_URL_REQUESTED = "upload_url_requested"
    PLAYBACK_URL_REQUESTED = "playback_url_requested"


@dataclass(frozen=True)
class AuditEntry:
    """An audit record before it is persisted."""

    user_id: str
    file_key: str
    action: AuditAction
    file_name: str | None = None
    content_type: str | None = None
    duration_seconds: int | None = None
    metadata: dict[str, Any] | None = None


def record_audit_entry(session: Session, entry: AuditEntry) -> FileAudit:
    """Append one audit record.

    Note:
        This function does NOT commit the transaction. It calls session.flush()
        to assign the row but leaves commit responsibility to the caller.

    Args:
        session: Active database session.
        entry: The entry to record.

    Returns:
        The created FileAudit instance (flushed but not committed).
    """
    record = FileAudit(
        user_id=entry.user_id,
        file_key=entry.file_key,
        action=str(entry.action),
        file_name=entry.file_name,
        content_type=entry.content_type,
        duration_seconds=entry.duration_seconds,
        metadata_json=json.dumps(entry.metadata) if entry.metadata is not None else None,
    )
    session.add(record)
    session.flush()
    return record


def find_earliest_upload_record(session: Session, file_key: str) -> FileAudit | None:
    """Return the first-ever upload_url_requested record for a file key, or None."""
    stmt = (
        select(FileAudit)
        .where(
            FileAudit.file_key == file_key,
            FileAudit.action == AuditAction.UPLOAD_URL_REQUESTED.value,
        )
        .order_by(FileAudit.created_at.asc(), FileAudit.id.asc())
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


def audit_metadata(record: FileAudit) -> dict[str, Any] | None:
    """Decode a record's metadata_json column."""
    if record.metadata_json is None:
        return None
    return json.loads(record.metadata_json)
