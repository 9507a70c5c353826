"""Bearer token verification against a remote JWKS.

The API uses this to turn an ``Authorization: Bearer <token>`` header into an
IdentityClaim. Signing keys come from a KeyResolver so tests can supply a
fixed key set without network access.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt as pyjwt
from jwt import PyJWKClient, PyJWKClientError
from jwt.exceptions import PyJWKSetError

from app.config import DEFAULT_JWKS_REQUESTS_PER_MINUTE
from app.errors import AuthenticationError
from app.rate_limit import TokenBucket

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"
DEFAULT_ALGORITHMS = ("RS256",)
JWKS_CACHE_LIFESPAN_SECONDS = 300


@dataclass(frozen=True)
class IdentityClaim:
    """Authenticated caller, derived from a verified token. Never persisted."""

    user_id: str
    email: str | None = None
    roles: list[str] = field(default_factory=list)


class KeyResolver(Protocol):
    """Resolves a token's key identifier to a public verification key."""

    def resolve_key(self, key_id: str) -> Any: ...


class StaticKeyResolver:
    """Fixed key set, for tests and offline deployments."""

    def __init__(self, keys: Mapping[str, Any]):
        self._keys = dict(keys)

    def resolve_key(self, key_id: str) -> Any:
        try:
            return self._keys[key_id]
        except KeyError:
            raise AuthenticationError(
                f"Unable to resolve signing key: no key matches kid {key_id!r}"
            ) from None


class RateLimitedJWKClient(PyJWKClient):
    """PyJWKClient that refuses to fetch the key set more often than allowed."""

    def __init__(
        self,
        uri: str,
        requests_per_minute: int = DEFAULT_JWKS_REQUESTS_PER_MINUTE,
        bucket: TokenBucket | None = None,
        **kwargs: Any,
    ):
        super().__init__(uri, **kwargs)
        self.bucket = bucket or TokenBucket.per_minute(requests_per_minute)

    def fetch_data(self) -> Any:
        if not self.bucket.try_acquire():
            raise PyJWKClientError("JWKS request rate limit exceeded")
        logger.debug("Fetching JWKS from %s", self.uri)
        return super().fetch_data()


class JwksKeyResolver:
    """Resolves keys from a cached, rate-limited remote JWKS endpoint."""

    def __init__(self, client: PyJWKClient):
        self.client = client

    @classmethod
    def from_uri(
        cls,
        jwks_uri: str,
        requests_per_minute: int = DEFAULT_JWKS_REQUESTS_PER_MINUTE,
    ) -> JwksKeyResolver:
        client = RateLimitedJWKClient(
            jwks_uri,
            requests_per_minute=requests_per_minute,
            cache_keys=True,
            cache_jwk_set=True,
            lifespan=JWKS_CACHE_LIFESPAN_SECONDS,
        )
        return cls(client)

    def resolve_key(self, key_id: str) -> Any:
        try:
            return self.client.get_signing_key(key_id).key
        # ValueError covers a non-JSON key set body and an unusable JWKS_URI
        except (PyJWKClientError, PyJWKSetError, ValueError) as e:
            logger.warning("JWKS key resolution failed for kid=%s: %s", key_id, e)
            raise AuthenticationError(f"Unable to resolve signing key: {e}") from e


def extract_bearer_token(authorization: str | None) -> str:
    """Extract the token from an Authorization header value.

    Raises:
        AuthenticationError: Header missing, or not exactly "Bearer <token>".
    """
    if not authorization:
        raise AuthenticationError("No token provided")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise AuthenticationError("Invalid authorization header")
    return parts[1]


class TokenVerifier:
    """Verifies asymmetric-signed JWTs and yields IdentityClaims."""

    def __init__(
        self,
        key_resolver: KeyResolver,
        audience: str | None = None,
        issuer: str | None = None,
        algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
    ):
        self.key_resolver = key_resolver
        self.audience = audience
        self.issuer = issuer
        self.algorithms = list(algorithms)

    def verify(self, token: str) -> IdentityClaim:
        """Verify signature, expiry, audience and issuer of a JWT.

        Args:
            token: The raw JWT string.

        Returns:
            IdentityClaim with user_id, email and roles.

        Raises:
            AuthenticationError: Any verification failure. No partial identity
                is returned.
        """
        try:
            header = pyjwt.get_unverified_header(token)
        except pyjwt.PyJWTError as e:
            raise AuthenticationError(f"Token validation failed: {e}") from e

        key_id = header.get("kid")
        if not key_id:
            raise AuthenticationError("Invalid token")

        key = self.key_resolver.resolve_key(key_id)

        try:
            payload = pyjwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp"], "verify_aud": self.audience is not None},
            )
        except pyjwt.PyJWTError as e:
            raise AuthenticationError(f"Token validation failed: {e}") from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid token payload")

        roles = payload.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]

        return IdentityClaim(user_id=str(user_id), email=payload.get("email"), roles=list(roles))

    def verify_authorization_header(self, authorization: str | None) -> IdentityClaim:
        """Convenience wrapper: extract the bearer token, then verify it."""
        return self.verify(extract_bearer_token(authorization))
