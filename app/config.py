"""Audio Files API - Configuration.

Environment-driven settings. No external config libraries.
All paths are relative to the repository root by default.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

# Repository root (parent of app/)
REPO_ROOT = Path(__file__).parent.parent.resolve()

# Data directory and default SQLite database path
DATA_DIR = REPO_ROOT / "data"
DB_PATH = DATA_DIR / "files_api.db"

# Presigned URL lifetimes
DEFAULT_UPLOAD_URL_EXPIRES_IN = 900  # seconds
DEFAULT_PLAYBACK_HOURS = 24
DEFAULT_MAX_PLAYBACK_HOURS = 168  # 7 days, also the SigV4 presign ceiling

# Remote key set fetch limit
DEFAULT_JWKS_REQUESTS_PER_MINUTE = 5
DEFAULT_S3_REGION = "us-east-1"


def _get_positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    """Read a positive integer from the environment or use the default.

    Unset, empty, non-numeric and non-positive values all fall back to the
    default.
    """
    env_val = environ.get(name)
    if env_val:
        try:
            value = int(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


def _get_optional(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    return value or None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the Files API."""

    jwks_uri: str = ""
    jwt_audience: str | None = None
    jwt_issuer: str | None = None
    jwks_requests_per_minute: int = DEFAULT_JWKS_REQUESTS_PER_MINUTE

    s3_endpoint: str | None = None
    s3_region: str = DEFAULT_S3_REGION
    s3_bucket: str = ""
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    upload_url_expires_in: int = DEFAULT_UPLOAD_URL_EXPIRES_IN
    max_playback_hours: int = DEFAULT_MAX_PLAYBACK_HOURS

    database_url: str | None = None
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Populated Settings instance.
    """
    env = os.environ if environ is None else environ
    return Settings(
        jwks_uri=env.get("JWKS_URI", ""),
        jwt_audience=_get_optional(env, "JWT_AUDIENCE"),
        jwt_issuer=_get_optional(env, "JWT_ISSUER"),
        jwks_requests_per_minute=_get_positive_int(
            env, "JWKS_REQUESTS_PER_MINUTE", DEFAULT_JWKS_REQUESTS_PER_MINUTE
        ),
        s3_endpoint=_get_optional(env, "S3_ENDPOINT"),
        s3_region=env.get("S3_REGION") or DEFAULT_S3_REGION,
        s3_bucket=env.get("S3_BUCKET", ""),
        aws_access_key_id=_get_optional(env, "AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=_get_optional(env, "AWS_SECRET_ACCESS_KEY"),
        upload_url_expires_in=_get_positive_int(
            env, "UPLOAD_URL_EXPIRES_IN", DEFAULT_UPLOAD_URL_EXPIRES_IN
        ),
        max_playback_hours=_get_positive_int(
            env, "MAX_PLAYBACK_HOURS", DEFAULT_MAX_PLAYBACK_HOURS
        ),
        database_url=_get_optional(env, "DATABASE_URL"),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
