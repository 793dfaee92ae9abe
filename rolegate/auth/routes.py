"""
Authentication routes for OAuth login and callback handling.

This module implements the OAuth 2.0 authorization code flow (with PKCE)
against the identity provider, then resolves the user's roles and issues
the session.
"""

import base64
import hashlib
import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from rolegate.auth.roles import BASELINE_ROLE_NAME, RoleResolver, placeholder_role
from rolegate.auth.session import clear_session, get_current_session, issue_session
from rolegate.auth.utils import (
    IdentityProviderError,
    exchange_code_for_tokens,
    extract_email,
    fetch_user_info,
    get_user_display_name,
    validate_state,
)
from rolegate.config import get_settings
from rolegate.dependencies import get_http_client, get_role_resolver
from rolegate.models import ResolvedRoles, Role, SessionRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


# =============================================================================
# PKCE Helper Functions
# =============================================================================

def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43-128 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode('utf-8').rstrip('=')


def generate_code_challenge(verifier: str) -> str:
    """
    Generate code challenge from verifier using S256 method.

    Args:
        verifier: Code verifier string

    Returns:
        Base64-URL-encoded SHA256 hash of verifier
    """
    digest = hashlib.sha256(verifier.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')


def _login_failed(reason: str) -> RedirectResponse:
    settings = get_settings()
    return RedirectResponse(
        url=f"{settings.LOGIN_PAGE_URL}?{urlencode({'error': reason})}",
        status_code=status.HTTP_302_FOUND,
    )


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/login", response_class=RedirectResponse)
async def login(request: Request):
    """
    Initiate the login flow by redirecting to the identity provider.

    Stores state and the PKCE verifier in the signed session for the
    callback to validate.
    """
    settings = get_settings()

    if not settings.AUTH0_DOMAIN or not settings.AUTH0_CLIENT_ID:
        logger.error("Login requested but AUTH0_DOMAIN/AUTH0_CLIENT_ID are not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login is not configured",
        )

    state = secrets.token_urlsafe(32)
    code_verifier = generate_code_verifier()

    request.session["oauth_state"] = state
    request.session["code_verifier"] = code_verifier

    params = {
        "client_id": settings.AUTH0_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": settings.AUTH0_REDIRECT_URI,
        "scope": settings.AUTH0_SCOPE,
        "state": state,
        "code_challenge": generate_code_challenge(code_verifier),
        "code_challenge_method": "S256",
    }

    authorization_url = f"{settings.auth0_base_url}/authorize?{urlencode(params)}"
    return RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)


# =============================================================================
# Callback Endpoint
# =============================================================================

@auth_router.get("/callback", response_class=RedirectResponse)
async def callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    resolver: RoleResolver = Depends(get_role_resolver),
):
    """
    Handle the OAuth callback.

    1. Validates state against the session
    2. Exchanges the code and fetches the user profile
    3. Resolves roles (provisioning the baseline role on first login)
    4. Issues the session and redirects into the application
    """
    settings = get_settings()

    if error:
        logger.warning("OAuth error from provider: %s (%s)", error, error_description)
        return _login_failed(error)

    expected_state = request.session.pop("oauth_state", None)
    code_verifier = request.session.pop("code_verifier", None)

    if not code or not validate_state(state, expected_state):
        logger.warning("Rejected callback with missing code or invalid state")
        return _login_failed("invalid_request")

    try:
        token_response = await exchange_code_for_tokens(
            http_client, settings, code=code, code_verifier=code_verifier
        )
        user_info = await fetch_user_info(
            http_client, settings, token_response["access_token"]
        )
    except IdentityProviderError as e:
        logger.error("Identity provider rejected login: %s", e)
        return _login_failed("access_denied")
    except httpx.HTTPError as e:
        logger.error("Unable to reach identity provider: %s", e)
        return _login_failed("provider_unavailable")

    email = extract_email(user_info)
    if not email:
        logger.warning("Login without email for subject %s", user_info.get("sub"))
        return _login_failed("email_required")

    logger.info("Authenticated %s <%s>", get_user_display_name(user_info), email)

    try:
        resolved = await resolver.resolve({**user_info, "email": email})
    except Exception:
        # Login must not be blocked by the Management API
        logger.exception("Role resolution failed for %s, using baseline role", email)
        resolved = ResolvedRoles(
            roles=[placeholder_role(BASELINE_ROLE_NAME)],
            userRole=Role.SIGNED_IN,
        )

    issue_session(request, email, resolved)

    return RedirectResponse(url=settings.POST_LOGIN_REDIRECT, status_code=status.HTTP_302_FOUND)


# =============================================================================
# Session Endpoints
# =============================================================================

@auth_router.get("/logout", response_class=RedirectResponse)
async def logout(request: Request):
    """Delete the session and return to the landing page."""
    clear_session(request)
    return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)


@auth_router.get("/me", response_model=SessionRecord)
async def me(session: SessionRecord = Depends(get_current_session)):
    return session
