"""
Content Processor Authentication API Router

Endpoints:
- GET /login: Start the OIDC authorization-code flow
- GET /callback: Finish the flow, register or link the user and hand a local
  bearer token to the frontend
- GET /me: Retrieve the current authenticated user profile

The ``state`` and ``nonce`` of a login attempt are kept in short-lived
HTTP-only cookies and checked on the callback.
"""

import logging
import secrets

from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, Query, status
from fastapi.responses import RedirectResponse

from content_processor.config import Settings, get_settings
from content_processor.core.auth import create_local_jwt, get_current_user
from content_processor.core.database import get_db_client
from content_processor.core.exceptions import UnauthenticatedError
from content_processor.core.oidc import OIDCClient
from content_processor.models.common import ApiResponse
from content_processor.models.user import User, UserResponse
from content_processor.services.user_service import UserService


logger = logging.getLogger(__name__)

router = APIRouter()

STATE_COOKIE = "oidc_state"
NONCE_COOKIE = "oidc_nonce"

# Login attempt lifetime in seconds
LOGIN_COOKIE_MAX_AGE = 600


class _OIDCClientContainer:
    """Holds the OIDC client so discovery is fetched once per settings object."""

    client: OIDCClient | None = None


_container = _OIDCClientContainer()


def get_oidc_client(settings: Settings = Depends(get_settings)) -> OIDCClient:
    if _container.client is None or _container.client.settings is not settings:
        _container.client = OIDCClient(settings)
    return _container.client


def get_user_service() -> UserService:
    return UserService(get_db_client())


@router.get(
    "/login",
    status_code=status.HTTP_302_FOUND,
    summary="Start OIDC login",
    responses={
        302: {"description": "Redirect to the identity provider"},
        503: {"description": "OIDC login is not configured"},
    },
)
async def login(
    oidc_client: OIDCClient = Depends(get_oidc_client),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    state = secrets.token_urlsafe(32)
    nonce = secrets.token_urlsafe(32)

    authorization_url = await oidc_client.build_authorization_url(state, nonce)

    response = RedirectResponse(authorization_url, status_code=status.HTTP_302_FOUND)
    for name, value in ((STATE_COOKIE, state), (NONCE_COOKIE, nonce)):
        response.set_cookie(
            name,
            value,
            max_age=LOGIN_COOKIE_MAX_AGE,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )

    logger.info("Redirecting to identity provider for login")
    return response


@router.get(
    "/callback",
    status_code=status.HTTP_302_FOUND,
    summary="Complete OIDC login",
    responses={
        302: {"description": "Redirect to the frontend with a bearer token"},
        401: {"description": "State mismatch or ID token rejected"},
        503: {"description": "OIDC login is not configured"},
    },
)
async def callback(
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    oidc_state: str | None = Cookie(default=None),
    oidc_nonce: str | None = Cookie(default=None),
    oidc_client: OIDCClient = Depends(get_oidc_client),
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """
    Exchange the authorization code and sign the user in.

    Flow:
    1. Compare ``state`` with the login cookie and require the nonce cookie
    2. Exchange the code at the token endpoint
    3. Validate the ID token, including the login nonce
    4. Find, link or register the user
    5. Redirect to ``{frontend_url}/auth/callback?token=<jwt>``
    """
    if oidc_state is None or not secrets.compare_digest(oidc_state, state):
        logger.warning("OIDC callback state mismatch")
        raise UnauthenticatedError("Invalid login state")

    if not oidc_nonce:
        logger.warning("OIDC callback without login nonce")
        raise UnauthenticatedError("Invalid login state")

    tokens = await oidc_client.exchange_code(code)
    claims = await oidc_client.validate_id_token(tokens["id_token"], oidc_nonce)

    user = await user_service.process_oidc_login(claims, oidc_client.provider)
    if not user.enabled:
        logger.warning("Disabled user %s attempted OIDC login", user.id)
        raise UnauthenticatedError("User account is disabled")

    token = create_local_jwt(user.id, user.email, settings)
    redirect_url = f"{settings.frontend_url}/auth/callback?{urlencode({'token': token})}"

    response = RedirectResponse(redirect_url, status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE)
    response.delete_cookie(NONCE_COOKIE)

    logger.info("User %s signed in via %s", user.id, oidc_client.provider.value)
    return response


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    response_model_exclude_none=True,
    summary="Get current user profile",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[UserResponse]:
    return ApiResponse.ok("User retrieved successfully", UserResponse.from_user(current_user))
