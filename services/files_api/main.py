"""Audio Files API - FastAPI application.

Presigned upload/playback URLs for audio files, gated by JWT bearer
authentication, with an audit record per issuance.

Dependencies (settings, storage gateway, key resolver, session factory) are
passed to create_app() explicitly; any left out are built from the
environment when the app starts.

Run with:
    uvicorn services.files_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Header, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.auth import IdentityClaim, JwksKeyResolver, KeyResolver, TokenVerifier
from app.config import Settings, load_settings
from app.db import init_db
from app.errors import AuthenticationError, FieldError, FileErrorCode, FilesApiError
from app.schemas import (
    ErrorResponse,
    FieldErrorResponse,
    FileMetadataResponse,
    PlaybackUrlResponse,
    UploadUrlResponse,
)
from app.storage import StorageGateway, create_s3_client
from app.validation import validate_playback_query, validate_upload_request
from services.files_api import service

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for a standalone process."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- Lifespan ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Builds whichever dependencies were not injected into create_app().
    """
    state = app.state
    settings: Settings = state.settings
    engine = None

    if state.session_factory is None:
        engine, state.session_factory = init_db(database_url=settings.database_url)

    if state.storage is None:
        if not settings.s3_bucket:
            logger.warning("S3_BUCKET is not set; presigned URLs will not resolve")
        state.storage = StorageGateway(create_s3_client(settings), settings.s3_bucket)

    if state.token_verifier is None:
        key_resolver = state.key_resolver
        if key_resolver is None:
            if not settings.jwks_uri:
                logger.warning("JWKS_URI is not set; every token will be rejected")
            key_resolver = JwksKeyResolver.from_uri(
                settings.jwks_uri, requests_per_minute=settings.jwks_requests_per_minute
            )
        state.token_verifier = TokenVerifier(
            key_resolver,
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )

    yield

    # Shutdown: release the pool we created (injected factories belong to the caller)
    if engine is not None:
        engine.dispose()


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - AUTHENTICATION_FAILED -> 401
    - VALIDATION_FAILED -> 400
    - FILE_NOT_FOUND -> 404
    - UPSTREAM_FAILED -> 502
    """
    return {
        FileErrorCode.AUTHENTICATION_FAILED: 401,
        FileErrorCode.VALIDATION_FAILED: 400,
        FileErrorCode.FILE_NOT_FOUND: 404,
        FileErrorCode.UPSTREAM_FAILED: 502,
    }.get(error_code, 500)


def make_error_response(
    error_code: str,
    error_message: str,
    field_errors: list[FieldError] | None = None,
    status_code: int | None = None,
) -> JSONResponse:
    """Create a JSON error response."""
    status_code = status_code or error_code_to_status(error_code)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    body = ErrorResponse(
        error_code=error_code,
        error_message=error_message,
        errors=[FieldErrorResponse(field=e.field, message=e.message) for e in field_errors]
        if field_errors
        else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def handle_files_api_error(request: Request, exc: FilesApiError) -> JSONResponse:
    return make_error_response(exc.error_code, exc.message, getattr(exc, "field_errors", None))


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    field_errors = [
        FieldError(".".join(str(p) for p in err["loc"]), err["msg"]) for err in exc.errors()
    ]
    return make_error_response(FileErrorCode.VALIDATION_FAILED, "Invalid request", field_errors)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # Log full exception server-side, return generic message to client
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return make_error_response(
        FileErrorCode.UPSTREAM_FAILED,
        "An unexpected error occurred",
        status_code=500,
    )


# --- Dependencies ---


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.storage


def get_db_session(request: Request):
    """Dependency that provides a database session."""
    SessionFactory: sessionmaker = request.app.state.session_factory
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> IdentityClaim:
    """Dependency that verifies the bearer token and yields the caller."""
    verifier: TokenVerifier = request.app.state.token_verifier
    try:
        return verifier.verify_authorization_header(authorization)
    except AuthenticationError as e:
        logger.warning(
            "Authentication failed for %s %s: %s", request.method, request.url.path, e.message
        )
        raise


CurrentUser = Annotated[IdentityClaim, Depends(get_current_user)]
DbSession = Annotated[Session, Depends(get_db_session)]
Storage = Annotated[StorageGateway, Depends(get_storage)]
AppSettings = Annotated[Settings, Depends(get_settings)]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    502: {"model": ErrorResponse, "description": "Object store or database failure"},
}


# --- Endpoints ---


async def create_upload_url(
    request: Request,
    user: CurrentUser,
    session: DbSession,
    storage: Storage,
    settings: AppSettings,
) -> UploadUrlResponse:
    """Issue a presigned upload URL and a fresh file key.

    The body is read only after the bearer token is verified, so
    unauthenticated requests are rejected regardless of payload.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    upload_request = validate_upload_request(payload).raise_for_errors()

    result = await run_in_threadpool(
        service.request_upload_url, session, storage, settings, user, upload_request
    )
    return UploadUrlResponse(upload_url=result.upload_url, file_key=result.file_key)


def get_playback_url(
    user: CurrentUser,
    session: DbSession,
    storage: Storage,
    settings: AppSettings,
    file_key: Annotated[str, Path(description="Storage key of the file")],
    expires_hours: Annotated[
        str | None, Query(alias="expiresHours", description="URL lifetime in hours (1-168)")
    ] = None,
) -> PlaybackUrlResponse:
    """Issue a presigned playback URL for an uploaded file."""
    query = validate_playback_query(expires_hours).raise_for_errors()
    result = service.request_playback_url(
        session, storage, settings, user, file_key, query.expires_hours
    )
    return PlaybackUrlResponse(playback_url=result.playback_url)


def get_file_metadata(
    user: CurrentUser,
    session: DbSession,
    storage: Storage,
    file_key: Annotated[str, Path(description="Storage key of the file")],
) -> FileMetadataResponse:
    """Return stored object metadata plus the declared file name and duration."""
    result = service.get_file_metadata(session, storage, file_key)
    return FileMetadataResponse(
        file_key=result.file_key,
        size=result.size,
        content_type=result.content_type,
        uploaded_at=result.uploaded_at,
        duration_seconds=result.duration_seconds,
        file_name=result.file_name,
    )


def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# --- FastAPI App ---


def create_app(
    settings: Settings | None = None,
    *,
    storage: StorageGateway | None = None,
    key_resolver: KeyResolver | None = None,
    session_factory: sessionmaker | None = None,
) -> FastAPI:
    """Create the Files API application.

    Args:
        settings: Runtime settings. Defaults to load_settings().
        storage: Storage gateway. Built from settings on startup if omitted.
        key_resolver: Token key resolver. Defaults to the remote JWKS.
        session_factory: SQLAlchemy sessionmaker. Built from settings on
            startup if omitted.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(
        title="Audio Files API",
        description="Presigned upload and playback URLs for audio files.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or load_settings()
    app.state.storage = storage
    app.state.key_resolver = key_resolver
    app.state.session_factory = session_factory
    app.state.token_verifier = None

    app.add_api_route(
        "/v1/files/upload-url",
        create_upload_url,
        methods=["POST"],
        response_model=UploadUrlResponse,
        responses=_ERROR_RESPONSES,
        summary="Request a presigned upload URL",
    )
    app.add_api_route(
        "/v1/files/playback-url/{file_key}",
        get_playback_url,
        methods=["GET"],
        response_model=PlaybackUrlResponse,
        responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown file key"}},
        summary="Request a presigned playback URL",
    )
    app.add_api_route(
        "/v1/files/{file_key}/metadata",
        get_file_metadata,
        methods=["GET"],
        response_model=FileMetadataResponse,
        response_model_exclude_none=True,
        responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown file key"}},
        summary="Get file metadata",
    )
    app.add_api_route("/health", health_check, methods=["GET"], summary="Health check")

    app.add_exception_handler(FilesApiError, handle_files_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging(app.state.settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)
