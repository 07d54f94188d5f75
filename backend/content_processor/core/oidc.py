"""
OIDC authorization-code client.

Builds the provider authorization URL, exchanges the returned code for tokens
and validates the ID token. Provider endpoints come from settings when set,
otherwise from the issuer's discovery document, fetched once per client.
"""

import asyncio
import logging

from typing import Any
from urllib.parse import urlencode

import requests

from fastapi import HTTPException, status

from content_processor.config import Settings
from content_processor.core.auth import OIDCTokenValidator
from content_processor.core.exceptions import UnauthenticatedError
from content_processor.models.user import AuthProvider


logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"

REQUEST_TIMEOUT_SECONDS = 10


class OIDCClient:
    """
    Thin client for one configured identity provider.

    Example:
        ```python
        client = OIDCClient(get_settings())
        url = await client.build_authorization_url(state, nonce)
        tokens = await client.exchange_code(code)
        claims = await client.validate_id_token(tokens["id_token"], nonce)
        ```
    """

    def __init__(self, settings: Settings) -> None:
        if not settings.is_oidc_enabled:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="OIDC login is not configured",
            )
        self.settings = settings
        self.issuer = settings.oidc_issuer.rstrip("/")
        self._discovery: dict[str, Any] | None = None
        self._validator: OIDCTokenValidator | None = None

    @property
    def provider(self) -> AuthProvider:
        """Provider tag stored on users; unknown tags map to the generic one."""
        try:
            return AuthProvider(self.settings.oidc_provider.lower())
        except ValueError:
            return AuthProvider.OIDC

    def _fetch_discovery(self) -> dict[str, Any]:
        url = f"{self.issuer}{DISCOVERY_PATH}"
        logger.info("Fetching OIDC discovery document from %s", url)
        try:
            response = requests.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.exception("OIDC discovery failed")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Identity provider unavailable",
            ) from e
        return response.json()

    async def _endpoint(self, override: str | None, key: str) -> str:
        if override:
            return override

        if self._discovery is None:
            self._discovery = await asyncio.to_thread(self._fetch_discovery)

        endpoint = self._discovery.get(key)
        if not endpoint:
            logger.error("OIDC discovery document has no %s", key)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Identity provider unavailable",
            )
        return endpoint

    async def build_authorization_url(self, state: str, nonce: str) -> str:
        endpoint = await self._endpoint(
            self.settings.oidc_authorization_endpoint, "authorization_endpoint"
        )
        params = {
            "response_type": "code",
            "client_id": self.settings.oidc_client_id,
            "redirect_uri": self.settings.oidc_redirect_uri,
            "scope": self.settings.oidc_scopes,
            "state": state,
            "nonce": nonce,
        }
        return f"{endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """
        Trade an authorization code for the provider's token response.

        Raises:
            UnauthenticatedError: If the provider rejects the code.
        """
        endpoint = await self._endpoint(self.settings.oidc_token_endpoint, "token_endpoint")
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.settings.oidc_redirect_uri,
            "client_id": self.settings.oidc_client_id,
            "client_secret": self.settings.oidc_client_secret,
        }

        def _post() -> requests.Response:
            return requests.post(endpoint, data=form, timeout=REQUEST_TIMEOUT_SECONDS)

        try:
            response = await asyncio.to_thread(_post)
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.warning("Authorization code exchange rejected: %s", str(e))
            raise UnauthenticatedError("Authorization code exchange failed") from e
        except requests.RequestException as e:
            logger.exception("Token endpoint unreachable")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Identity provider unavailable",
            ) from e

        tokens = response.json()
        if not tokens.get("id_token"):
            raise UnauthenticatedError("Identity provider returned no ID token")
        return tokens

    async def validate_id_token(self, id_token: str, nonce: str | None) -> dict[str, Any]:
        if self._validator is None:
            jwks_uri = await self._endpoint(self.settings.oidc_jwks_uri, "jwks_uri")
            self._validator = OIDCTokenValidator(self.settings, jwks_uri, self.issuer)
        return await self._validator.validate_id_token(id_token, nonce)
