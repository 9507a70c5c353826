"""Audio Files API - SQLAlchemy ORM models.

Database tables:
1. file_audits
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class FileAudit(Base):
    """Append-only record of a file-related action.

    Rows are inserted once and never updated or deleted.
    """

    __tablename__ = "file_audits"

    # Primary key (also breaks created_at ties in insertion order)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Who did it
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Which object (loose reference; the object may never be uploaded)
    file_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # upload_url_requested | playback_url_requested
    action: Mapped[str] = mapped_column(String(32), nullable=False)

    # Declared at upload-URL time
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Action-specific details as JSON string (parsed by application)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("ix_file_audits_key_action", "file_key", "action", "created_at"),)
