"""
Management API access token cache.

This module handles:
- Client-credentials token exchange against the provider's token endpoint
- Caching the resulting bearer token until shortly before it expires
- Invalidating the token after the Management API rejects it
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from rolegate.config import Settings, get_settings
from rolegate.management.errors import ManagementConfigError, ManagementNetworkError

logger = logging.getLogger(__name__)

# Tokens are considered expired this many seconds before the provider says so
EXPIRY_MARGIN_SECONDS = 60
DEFAULT_EXPIRES_IN_SECONDS = 86400


@dataclass(frozen=True)
class ManagementToken:
    """Bearer token with its (margin-adjusted) expiry as a clock timestamp."""

    value: str
    expires_at: float

    def is_usable(self, now: float) -> bool:
        return now < self.expires_at


class ManagementTokenCache:
    """
    Process-wide holder for the Management API access token.

    Constructed once at application startup and shared by every
    ManagementApiClient call. There is no lock: callers racing on an expired
    token may each perform one exchange, which the provider tolerates.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            http_client: Shared async HTTP client (injected for testing).
            settings: Application settings. Defaults to get_settings().
            clock: Returns the current time in seconds.
        """
        self._http_client = http_client
        self._settings = settings or get_settings()
        self._clock = clock
        self._token: Optional[ManagementToken] = None

    @property
    def cached_token(self) -> Optional[ManagementToken]:
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a fresh exchange."""
        if self._token is not None:
            logger.info("Invalidating cached Management API token")
        self._token = None

    async def get_token(self) -> str:
        """
        Return a usable Management API token, exchanging credentials if needed.

        Returns:
            Bearer token string

        Raises:
            ManagementConfigError: If domain, client id or secret is missing
            ManagementNetworkError: If the exchange fails or returns non-2xx
        """
        settings = self._settings

        if not settings.management_configured:
            logger.error("Management API configuration missing")
            raise ManagementConfigError(
                "AUTH0_DOMAIN, AUTH0_CLIENT_ID and AUTH0_CLIENT_SECRET are required"
            )

        token = self._token
        if token is not None and token.is_usable(self._clock()):
            return token.value

        token_endpoint = f"{settings.auth0_base_url}/oauth/token"
        payload = {
            "grant_type": "client_credentials",
            "client_id": settings.AUTH0_CLIENT_ID,
            "client_secret": settings.AUTH0_CLIENT_SECRET,
            "audience": settings.management_audience,
        }

        try:
            response = await self._http_client.post(
                token_endpoint,
                data=payload,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=settings.MANAGEMENT_HTTP_TIMEOUT_SECONDS,
            )
        except httpx.RequestError as e:
            logger.error("Management API token request failed: %s", e)
            raise ManagementNetworkError(f"Token request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "Failed to generate Management API token. Status: %d, response: %s",
                response.status_code,
                response.text,
            )
            raise ManagementNetworkError(
                "Failed to generate Management API token",
                status_code=response.status_code,
            )

        token_data = response.json()
        expires_in = token_data.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS

        self._token = ManagementToken(
            value=token_data["access_token"],
            expires_at=self._clock() + expires_in - EXPIRY_MARGIN_SECONDS,
        )
        logger.info("Obtained Management API token (expires in %ss)", expires_in)
        return self._token.value
