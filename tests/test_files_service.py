"""Tests for the file service orchestration (storage + audit log)."""

from unittest import mock
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.audit import audit_metadata
from app.config import Settings
from app.errors import NotFoundError, UpstreamError
from app.models import FileAudit
from app.schemas import AudioContentType, UploadUrlRequest
from services.files_api.service import (
    clamp_playback_hours,
    generate_file_key,
    get_file_metadata,
    request_playback_url,
    request_upload_url,
)


def expires_param(url: str) -> int:
    return int(parse_qs(urlparse(url).query)["X-Amz-Expires"][0])


@pytest.fixture
def upload_request():
    return UploadUrlRequest(fileName="song.m4a", contentType="audio/m4a", durationSeconds=180)


@pytest.fixture
def session(temp_db):
    _, _, SessionFactory = temp_db
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


def audit_rows(session, file_key=None):
    stmt = select(FileAudit).order_by(FileAudit.id)
    if file_key is not None:
        stmt = stmt.where(FileAudit.file_key == file_key)
    return session.execute(stmt).scalars().all()


class TestGenerateFileKey:
    def test_unique(self):
        keys = {generate_file_key() for _ in range(1000)}
        assert len(keys) == 1000


class TestClampPlaybackHours:
    @pytest.mark.parametrize(
        "requested, maximum, expected", [(24, 168, 24), (200, 168, 168), (168, 168, 168), (72, 48, 48)]
    )
    def test_clamp(self, requested, maximum, expected):
        assert clamp_playback_hours(requested, maximum) == expected


class TestRequestUploadUrl:
    def test_issues_url_and_records_audit(self, session, storage, settings, identity, upload_request):
        result = request_upload_url(session, storage, settings, identity, upload_request)

        assert result.file_key in result.upload_url
        assert expires_param(result.upload_url) == 900

        rows = audit_rows(session)
        assert len(rows) == 1
        row = rows[0]
        assert row.file_key == result.file_key
        assert row.user_id == identity.user_id
        assert row.action == "upload_url_requested"
        assert row.file_name == "song.m4a"
        assert row.content_type == AudioContentType.M4A.value
        assert row.duration_seconds == 180

    def test_audit_committed(self, temp_db, session, storage, settings, identity, upload_request):
        result = request_upload_url(session, storage, settings, identity, upload_request)

        _, _, SessionFactory = temp_db
        other = SessionFactory()
        try:
            assert len(audit_rows(other, result.file_key)) == 1
        finally:
            other.close()

    def test_uses_configured_ttl(self, session, storage, identity, upload_request):
        settings = Settings(upload_url_expires_in=120)
        result = request_upload_url(session, storage, settings, identity, upload_request)
        assert expires_param(result.upload_url) == 120

    def test_fresh_key_each_time(self, session, storage, settings, identity, upload_request):
        keys = {
            request_upload_url(session, storage, settings, identity, upload_request).file_key
            for _ in range(10)
        }
        assert len(keys) == 10
        assert len(audit_rows(session)) == 10

    def test_database_failure_is_upstream_error(self, storage, settings, identity, upload_request):
        session = mock.MagicMock(spec=Session)
        session.flush.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

        with pytest.raises(UpstreamError) as exc_info:
            request_upload_url(session, storage, settings, identity, upload_request)

        assert exc_info.value.message == "Database request failed"
        session.rollback.assert_called_once()

    def test_commit_failure_is_upstream_error(self, storage, settings, identity, upload_request):
        session = mock.MagicMock(spec=Session)
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("locked"))

        with pytest.raises(UpstreamError):
            request_upload_url(session, storage, settings, identity, upload_request)
        session.rollback.assert_called_once()


class TestRequestPlaybackUrl:
    def test_issues_url_and_records_audit(self, session, storage, settings, identity, put_object):
        put_object("existing-key")

        result = request_playback_url(session, storage, settings, identity, "existing-key", 12)

        assert result.expires_hours == 12
        assert expires_param(result.playback_url) == 12 * 3600
        rows = audit_rows(session, "existing-key")
        assert len(rows) == 1
        assert rows[0].action == "playback_url_requested"
        assert rows[0].user_id == identity.user_id
        assert audit_metadata(rows[0]) == {"expiresHours": 12}

    def test_default_is_24_hours(self, session, storage, settings, identity, put_object):
        put_object("existing-key")
        result = request_playback_url(session, storage, settings, identity, "existing-key")
        assert expires_param(result.playback_url) == 24 * 3600

    def test_clamps_to_configured_maximum(self, session, storage, settings, identity, put_object):
        put_object("existing-key")

        result = request_playback_url(session, storage, settings, identity, "existing-key", 200)

        assert result.expires_hours == 168
        assert expires_param(result.playback_url) == 168 * 3600
        assert audit_metadata(audit_rows(session)[0]) == {"expiresHours": 168}

    def test_lower_configured_maximum(self, session, storage, identity, put_object):
        put_object("existing-key")
        settings = Settings(max_playback_hours=48)

        result = request_playback_url(session, storage, settings, identity, "existing-key", 100)

        assert result.expires_hours == 48
        assert expires_param(result.playback_url) == 48 * 3600

    def test_unknown_key_not_found_without_audit(self, session, storage, settings, identity):
        with pytest.raises(NotFoundError) as exc_info:
            request_playback_url(session, storage, settings, identity, "missing-key")

        assert exc_info.value.message == "File with key missing-key not found"
        assert audit_rows(session) == []

    def test_upload_intent_alone_is_not_enough(
        self, session, storage, settings, identity, upload_request
    ):
        issued = request_upload_url(session, storage, settings, identity, upload_request)

        with pytest.raises(NotFoundError):
            request_playback_url(session, storage, settings, identity, issued.file_key)
        assert len(audit_rows(session, issued.file_key)) == 1


class TestGetFileMetadata:
    def test_merges_upload_record(
        self, session, storage, settings, identity, upload_request, put_object
    ):
        issued = request_upload_url(session, storage, settings, identity, upload_request)
        put_object(issued.file_key, body=b"a" * 1234, content_type="audio/m4a")

        result = get_file_metadata(session, storage, issued.file_key)

        assert result.file_key == issued.file_key
        assert result.size == 1234
        assert result.content_type == "audio/m4a"
        assert result.uploaded_at is not None
        assert result.file_name == "song.m4a"
        assert result.duration_seconds == 180

    def test_object_without_audit_record(self, session, storage, put_object):
        put_object("uploaded-elsewhere", body=b"abc")

        result = get_file_metadata(session, storage, "uploaded-elsewhere")

        assert result.size == 3
        assert result.file_name is None
        assert result.duration_seconds is None

    def test_unknown_key(self, session, storage):
        with pytest.raises(NotFoundError):
            get_file_metadata(session, storage, "never-uploaded")
