"""
Identity provider helpers for the OAuth authorization-code flow.

This module handles:
- Exchanging the authorization code for provider tokens
- Fetching the authenticated user's profile from /userinfo
- Extracting email and display name from the profile
"""

import logging
from typing import Any, Dict, Optional

import httpx

from rolegate.config import Settings

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """The provider rejected the code exchange or user info request."""
    pass


async def exchange_code_for_tokens(
    http_client: httpx.AsyncClient,
    settings: Settings,
    code: str,
    code_verifier: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Exchange an authorization code for access and ID tokens.

    Args:
        http_client: Shared async HTTP client
        settings: Application settings
        code: Authorization code from the callback
        code_verifier: PKCE code verifier stored at login

    Returns:
        Token response dictionary containing access_token (and id_token)

    Raises:
        IdentityProviderError: If the provider returns an error
        httpx.HTTPError: On transport failure
    """
    payload = {
        "grant_type": "authorization_code",
        "client_id": settings.AUTH0_CLIENT_ID,
        "code": code,
        "redirect_uri": settings.AUTH0_REDIRECT_URI,
    }

    if settings.AUTH0_CLIENT_SECRET:
        payload["client_secret"] = settings.AUTH0_CLIENT_SECRET

    if code_verifier:
        payload["code_verifier"] = code_verifier

    response = await http_client.post(
        f"{settings.auth0_base_url}/oauth/token",
        data=payload,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=settings.MANAGEMENT_HTTP_TIMEOUT_SECONDS,
    )

    if not response.is_success:
        error_data = {}
        if response.headers.get("content-type", "").startswith("application/json"):
            error_data = response.json()
        error_msg = error_data.get("error_description") or error_data.get("error") or "Token exchange failed"
        raise IdentityProviderError(f"Token exchange failed: {error_msg}")

    token_data = response.json()
    if "access_token" not in token_data:
        raise IdentityProviderError("Token response missing access_token")

    return token_data


async def fetch_user_info(
    http_client: httpx.AsyncClient,
    settings: Settings,
    access_token: str,
) -> Dict[str, Any]:
    """
    Fetch the authenticated user's profile.

    Raises:
        IdentityProviderError: On non-2xx response
        httpx.HTTPError: On transport failure
    """
    response = await http_client.get(
        f"{settings.auth0_base_url}/userinfo",
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=settings.MANAGEMENT_HTTP_TIMEOUT_SECONDS,
    )

    if not response.is_success:
        raise IdentityProviderError(f"User info request failed with status {response.status_code}")

    return response.json()


def extract_email(user_info: Dict[str, Any]) -> Optional[str]:
    """
    Extract a normalized email address from the user profile.

    Returns:
        Lowercased email, or None if the profile has none
    """
    email = user_info.get("email")
    if email and "@" in email:
        return email.lower().strip()
    return None


def get_user_display_name(user_info: Dict[str, Any]) -> str:
    """
    Extract user's display name from the profile.

    Args:
        user_info: Profile returned by /userinfo

    Returns:
        Display name or email local part as fallback
    """
    name = user_info.get("name") or user_info.get("nickname")
    if name:
        return name

    email = extract_email(user_info)
    if email:
        return email.split("@")[0].title()

    return "User"


def validate_state(received_state: Optional[str], expected_state: Optional[str]) -> bool:
    """
    Validate OAuth state parameter.

    Returns:
        True if both are present and match
    """
    return bool(received_state) and bool(expected_state) and received_state == expected_state
