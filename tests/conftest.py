"""Shared pytest fixtures for Audio Files API tests.

This module contains common fixtures used across multiple test files:
RSA signing keys and a token factory, a moto-backed S3 bucket, a temporary
SQLite database, and a FastAPI test client wired to all three.
"""

import tempfile
import time
from pathlib import Path

import jwt as pyjwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from moto import mock_aws

from app.auth import IdentityClaim, StaticKeyResolver
from app.config import Settings
from app.db import init_db
from app.storage import StorageGateway, create_s3_client
from services.files_api.main import create_app

from tests.consts import TEST_AUDIENCE, TEST_BUCKET, TEST_ISSUER, TEST_KID, TEST_USER_ID

# Sentinel so tests can drop a claim entirely by passing None
_DEFAULT = object()


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key whose public half is served by the test key resolver."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def untrusted_private_key():
    """RSA key the API does not know about."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_token(rsa_private_key):
    """Build RS256 tokens with the claims the API expects.

    Any claim passed as None is omitted from the payload.
    """

    def _make(
        sub=TEST_USER_ID,
        email="listener@example.com",
        roles=_DEFAULT,
        exp=_DEFAULT,
        aud=TEST_AUDIENCE,
        iss=TEST_ISSUER,
        kid=TEST_KID,
        key=None,
        **extra,
    ) -> str:
        payload = {
            "sub": sub,
            "email": email,
            "roles": ["listener"] if roles is _DEFAULT else roles,
            "exp": int(time.time()) + 3600 if exp is _DEFAULT else exp,
            "aud": aud,
            "iss": iss,
            **extra,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        headers = {"kid": kid} if kid is not None else None
        return pyjwt.encode(
            payload, key or rsa_private_key, algorithm="RS256", headers=headers
        )

    return _make


@pytest.fixture
def auth_headers(make_token):
    """Authorization header carrying a valid token."""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def key_resolver(rsa_private_key):
    return StaticKeyResolver({TEST_KID: rsa_private_key.public_key()})


@pytest.fixture
def identity():
    return IdentityClaim(user_id=TEST_USER_ID, email="listener@example.com", roles=["listener"])


@pytest.fixture
def settings():
    return Settings(
        jwt_audience=TEST_AUDIENCE,
        jwt_issuer=TEST_ISSUER,
        s3_bucket=TEST_BUCKET,
        s3_region="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so nothing can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client(aws_credentials, settings):
    """S3 client against a moto-mocked bucket."""
    with mock_aws():
        client = create_s3_client(settings)
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client


@pytest.fixture
def storage(s3_client):
    return StorageGateway(s3_client, TEST_BUCKET)


@pytest.fixture
def put_object(s3_client):
    """Simulate a completed upload of `key`."""

    def _put(key: str, body: bytes = b"\x00" * 2048, content_type: str = "audio/m4a"):
        s3_client.put_object(Bucket=TEST_BUCKET, Key=key, Body=body, ContentType=content_type)

    return _put


@pytest.fixture
def temp_db():
    """Create a temporary database for testing.

    Creates an isolated SQLite database in a temporary directory.
    The database is cleaned up after the test completes.

    Yields:
        tuple: (db_path, engine, SessionFactory)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        engine, SessionFactory = init_db(db_path)
        yield db_path, engine, SessionFactory
        engine.dispose()


@pytest.fixture
def make_app(temp_db, storage, settings, key_resolver):
    """Build an app wired to the test database, bucket and key set."""
    _, _, SessionFactory = temp_db

    def _make(app_settings: Settings | None = None):
        return create_app(
            app_settings or settings,
            storage=storage,
            key_resolver=key_resolver,
            session_factory=SessionFactory,
        )

    return _make


@pytest.fixture
def client(make_app, temp_db):
    """Create a FastAPI test client with temp database and mocked S3.

    Yields:
        tuple: (test_client, SessionFactory)
    """
    _, _, SessionFactory = temp_db
    with TestClient(make_app()) as test_client:
        yield test_client, SessionFactory

