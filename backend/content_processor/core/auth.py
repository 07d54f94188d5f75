"""
Content Processor Authentication Module

Issues and verifies the locally signed bearer tokens used for every API call,
validates OIDC ID tokens from the external identity provider, and exposes the
FastAPI dependencies that resolve a request to an authenticated User.

- Local HMAC JWTs (python-jose) with a configurable expiry
- OIDC ID token validation: RS256 signature against the provider's JWKS
  (cached for one hour), audience, issuer, expiry and nonce
- ``get_current_user`` dependency: token -> User, registering unknown subjects

Usage:
    ```python
    from fastapi import Depends
    from content_processor.core.auth import get_current_user

    @router.get("/protected")
    async def protected_route(user: User = Depends(get_current_user)):
        return {"user_id": user.id}
    ```
"""

import asyncio
import json
import logging

from datetime import UTC, datetime, timedelta
from typing import Any

import requests

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.utils import base64url_decode

from content_processor.config import Settings, get_settings
from content_processor.core.database import get_db_client
from content_processor.core.exceptions import UnauthenticatedError
from content_processor.models.user import User
from content_processor.services.user_service import UserService


logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# Missing credentials are reported through UnauthenticatedError so every 401
# carries the standard envelope.
security = HTTPBearer(
    scheme_name="Bearer",
    description="Locally issued JWT bearer token obtained from /auth/callback.",
    auto_error=False,
)

# JWT format: header.payload.signature
JWT_PARTS_COUNT = 3

BASE64_PADDING_BOUNDARY = 4


# =============================================================================
# OIDC ID Token Validator
# =============================================================================


class OIDCTokenValidator:
    """
    Validates ID tokens issued by the configured OIDC provider.

    1. Reads the key ID (kid) from the unverified token header
    2. Looks the key up in the provider's JWKS (cached for one hour)
    3. Verifies the RS256 signature, audience, issuer and expiry
    4. Compares the ``nonce`` claim with the one sent at login

    Attributes:
        settings: Application settings with the OIDC client configuration
        jwks_uri: Provider JWKS endpoint
        issuer: Expected ``iss`` claim
    """

    # JWKS cache duration in seconds (1 hour)
    JWKS_CACHE_DURATION = 3600

    def __init__(self, settings: Settings, jwks_uri: str, issuer: str) -> None:
        self.settings = settings
        self.jwks_uri = jwks_uri
        self.issuer = issuer
        self._jwks_cache: dict[str, Any] | None = None
        self._jwks_cache_time: datetime | None = None

    def _fetch_jwks(self) -> dict[str, Any]:
        """
        Fetch the provider JWKS, reusing the cached copy for up to an hour.

        Raises:
            HTTPException: 503 if the JWKS endpoint cannot be reached.
        """
        now = datetime.now(UTC)

        if self._jwks_cache is not None and self._jwks_cache_time is not None:
            cache_age = (now - self._jwks_cache_time).total_seconds()
            if cache_age < self.JWKS_CACHE_DURATION:
                logger.debug("JWKS cache hit (%.0f s old)", cache_age)
                return self._jwks_cache

        logger.info("Fetching JWKS from: %s", self.jwks_uri)
        try:
            response = requests.get(self.jwks_uri, timeout=10)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.exception("Failed to fetch JWKS from identity provider")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to verify token: identity provider keys unavailable",
            ) from e

        self._jwks_cache = response.json()
        self._jwks_cache_time = now
        return self._jwks_cache

    async def get_public_key(self, token: str) -> dict[str, Any]:
        """
        Find the JWK matching the token's ``kid``.

        Raises:
            UnauthenticatedError: If the header is malformed or the key is unknown.
        """
        try:
            header = decode_token_without_verification(token)
        except ValueError as e:
            raise UnauthenticatedError("Invalid token format") from e

        kid = header.get("kid")
        if not kid:
            logger.warning("ID token header missing 'kid'")
            raise UnauthenticatedError("Invalid token: missing key ID")

        jwks = await asyncio.to_thread(self._fetch_jwks)
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                return key

        logger.warning("ID token signed with unknown key %s", kid)
        raise UnauthenticatedError("Invalid token: key not found")

    async def validate_id_token(self, token: str, nonce: str | None = None) -> dict[str, Any]:
        """
        Fully validate an ID token.

        Args:
            token: Raw ID token from the token endpoint
            nonce: Nonce sent with the authorization request, if any

        Returns:
            dict: Verified claims

        Raises:
            UnauthenticatedError: On any verification failure
        """
        rsa_key = await self.get_public_key(token)

        try:
            claims = jwt.decode(
                token,
                rsa_key,
                algorithms=["RS256"],
                audience=self.settings.oidc_client_id,
                issuer=self.issuer,
                options={"verify_at_hash": False},
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("ID token has expired")
            raise UnauthenticatedError("Token has expired") from e
        except jwt.JWTClaimsError as e:
            logger.warning("ID token claims validation failed: %s", str(e))
            raise UnauthenticatedError("Invalid token claims") from e
        except JWTError as e:
            logger.warning("ID token validation failed: %s", str(e))
            raise UnauthenticatedError("Invalid token") from e

        if nonce is not None and claims.get("nonce") != nonce:
            logger.warning("ID token nonce mismatch for subject %s", claims.get("sub"))
            raise UnauthenticatedError("Invalid token nonce")

        logger.info("ID token validated for subject: %s", claims.get("sub", "unknown"))
        return claims


# =============================================================================
# Local JWT Functions
# =============================================================================


def create_local_jwt(user_id: str, email: str | None, settings: Settings) -> str:
    """
    Issue a locally signed bearer token.

    Token claims:
    - sub: User ID (subject)
    - email: User's email address (may be null)
    - exp: Expiration timestamp (``jwt_expiration_hours`` from now)
    - iat: Issued at timestamp
    - type: "local"

    Example:
        ```python
        token = create_local_jwt(user.id, user.email, get_settings())
        ```
    """
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "iat": now,
        "type": "local",
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)

    logger.info("Issued bearer token for user %s, valid until %s", user_id, expire.isoformat())
    return token


def validate_local_jwt(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify signature and expiry of a locally issued token.

    Raises:
        JWTError: If the token is invalid, expired, or signature verification fails.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Bearer token expired")
        raise
    except JWTError as e:
        logger.warning("Bearer token rejected: %s", e)
        raise

    logger.debug("Bearer token accepted for subject %s", payload.get("sub"))
    return payload


def decode_token_without_verification(token: str) -> dict[str, Any]:
    """
    Decode a JWT header without signature verification.

    Only used to pick the JWKS key for an ID token; never for authentication.

    Raises:
        ValueError: If the token format is invalid.
    """
    parts = token.split(".")
    if len(parts) != JWT_PARTS_COUNT:
        raise ValueError(f"Invalid JWT format: expected {JWT_PARTS_COUNT} parts")

    header_b64 = parts[0]
    padding = BASE64_PADDING_BOUNDARY - len(header_b64) % BASE64_PADDING_BOUNDARY
    if padding != BASE64_PADDING_BOUNDARY:
        header_b64 += "=" * padding

    try:
        header_bytes = base64url_decode(header_b64.encode("utf-8"))
        return json.loads(header_bytes.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Undecodable token header: %s", e)
        raise ValueError(f"Invalid token format: {e!s}") from e


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def authenticate_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Validate the request's bearer token.

    Returns:
        dict: The verified token claims.

    Raises:
        UnauthenticatedError: Missing, malformed, expired or forged token.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Authentication required")

    try:
        return validate_local_jwt(credentials.credentials, settings)
    except JWTError as e:
        raise UnauthenticatedError("Invalid or expired token") from e


async def get_current_user(
    token_data: dict[str, Any] = Depends(authenticate_token),
) -> User:
    """
    Resolve the verified token to a User.

    Lookup strategy:
    1. MongoDB ``_id`` equal to ``sub``
    2. ``provider_id`` equal to ``sub``
    3. ``email`` claim
    4. Otherwise register a new local user

    Raises:
        UnauthenticatedError: Token has no subject, or the user is disabled.
        HTTPException: 503 when the database is unavailable.
    """
    subject = token_data.get("sub")
    if not subject:
        logger.warning("Bearer token has no subject")
        raise UnauthenticatedError("Invalid token: missing user identifier")

    try:
        user_service = UserService(get_db_client())
        user = await user_service.resolve_token_subject(str(subject), token_data.get("email"))
    except RuntimeError:
        logger.exception("User lookup failed: database unavailable")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from None

    if not user.enabled:
        logger.warning("Disabled user %s attempted to authenticate", user.id)
        raise UnauthenticatedError("User account is disabled")

    logger.debug("User authenticated: %s", user.email or user.id)
    return user
