"""
Management API client.

Typed user and role operations against the identity provider's
administrative REST API (``https://{domain}/api/v2``). Every call is
authenticated with the token from ManagementTokenCache.

Failure contract: a missing configuration, an unavailable token or a
non-2xx response is logged and turned into the operation's sentinel
(``None``, ``[]`` or ``False``). Only unexpected conditions such as a
malformed JSON body propagate to the caller.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from rolegate.config import Settings, get_settings
from rolegate.management.errors import ManagementError
from rolegate.management.token_cache import ManagementTokenCache
from rolegate.models import IdentityProviderRole, UsersPage

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0


def _parse_roles(data: List[Dict[str, Any]]) -> List[IdentityProviderRole]:
    return [
        IdentityProviderRole(
            id=role.get("id") or "",
            name=role.get("name") or "",
            description=role.get("description") or "",
        )
        for role in data
    ]


class ManagementApiClient:
    """Client for the identity provider's Management API v2."""

    def __init__(
        self,
        token_cache: ManagementTokenCache,
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        """
        Initialize the Management API client.

        Args:
            token_cache: Shared token cache.
            http_client: Shared async HTTP client.
            settings: Application settings. Defaults to get_settings().
            sleep: Delay function used between rate-limit retries.
            max_retries: Retries after the first attempt of a role fetch.
            backoff_seconds: First retry delay; doubles on every retry.
        """
        self._token_cache = token_cache
        self._http_client = http_client
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds

    # =========================================================================
    # Request Helpers
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """
        Send an authenticated request to the Management API.

        Raises:
            ManagementError: If configuration or the token is unavailable
            httpx.RequestError: On transport failure
        """
        if not self._settings.AUTH0_DOMAIN:
            raise ManagementError("AUTH0_DOMAIN is not configured")

        response = await self._send(method, path, params, json)

        if response.status_code == 401:
            # Token revoked or rotated on the provider side: replay once
            logger.warning("Management API rejected the cached token, refreshing")
            self._token_cache.invalidate()
            response = await self._send(method, path, params, json)
            if response.status_code == 401:
                self._token_cache.invalidate()

        return response

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]],
        json: Optional[Any],
    ) -> httpx.Response:
        token = await self._token_cache.get_token()

        return await self._http_client.request(
            method,
            f"{self._settings.management_api_base}{path}",
            params=params,
            json=json,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=self._settings.MANAGEMENT_HTTP_TIMEOUT_SECONDS,
        )

    def _retry_delay(self, attempt: int) -> float:
        return self._backoff_seconds * (2 ** attempt)

    @staticmethod
    def _log_failure(action: str, response: httpx.Response) -> None:
        logger.error(
            "Failed to %s. Status: %d, response: %s",
            action,
            response.status_code,
            response.text,
        )

    # =========================================================================
    # Users
    # =========================================================================

    async def find_user_id_by_email(self, email: str) -> Optional[str]:
        """
        Look up a provider user id by email address.

        Emails are queryable but not guaranteed unique; the first match wins.

        Returns:
            The first matching user's id, or None
        """
        try:
            response = await self._request(
                "GET", "/users-by-email", params={"email": email}
            )
        except ManagementError as e:
            logger.error("Cannot look up user by email: %s", e)
            return None
        except httpx.RequestError as e:
            logger.error("Error fetching user by email: %s", e)
            return None

        if not response.is_success:
            self._log_failure("fetch user by email", response)
            return None

        users = response.json()
        if not users:
            logger.info("No user found with email %s", email)
            return None

        if len(users) > 1:
            logger.warning(
                "%d users share email %s, using the first match",
                len(users),
                email,
            )
        return users[0].get("user_id")

    async def list_users(
        self,
        page: int = 0,
        per_page: int = 50,
        search: Optional[str] = None,
    ) -> Optional[UsersPage]:
        """
        Fetch one page of users, optionally filtered by an email wildcard.

        Returns:
            UsersPage, or None on failure
        """
        params: Dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "include_totals": "true",
        }
        if search:
            params["q"] = f"email:*{search}*"

        try:
            response = await self._request("GET", "/users", params=params)
        except ManagementError as e:
            logger.error("Cannot list users: %s", e)
            return None
        except httpx.RequestError as e:
            logger.error("Error listing users: %s", e)
            return None

        if not response.is_success:
            self._log_failure("list users", response)
            return None

        data = response.json()
        if isinstance(data, list):
            # include_totals ignored by the tenant
            return UsersPage(users=data, total=len(data))
        return UsersPage(users=data.get("users", []), total=data.get("total", 0))

    async def update_user_metadata(self, user_id: str, metadata: Dict[str, Any]) -> bool:
        """PATCH arbitrary fields (e.g. app_metadata) on a user."""
        try:
            response = await self._request("PATCH", f"/users/{user_id}", json=metadata)
        except ManagementError as e:
            logger.error("Cannot update user metadata: %s", e)
            return False
        except httpx.RequestError as e:
            logger.error("Error updating metadata for user %s: %s", user_id, e)
            return False

        if not response.is_success:
            self._log_failure(f"update metadata for user {user_id}", response)
            return False
        return True

    # =========================================================================
    # Roles
    # =========================================================================

    async def fetch_user_roles(self, user_id: str) -> List[IdentityProviderRole]:
        """
        Fetch the roles assigned to a user.

        A 404 means the user has no roles. Rate limiting (429) and transport
        errors are retried with exponential backoff (1s, 2s, 4s by default);
        after the last retry the fetch gives up and returns an empty list.

        Args:
            user_id: Provider user id

        Returns:
            Assigned roles, empty on failure
        """
        attempt = 0
        while True:
            try:
                response = await self._request("GET", f"/users/{user_id}/roles")
            except ManagementError as e:
                logger.error("Cannot fetch roles for user %s: %s", user_id, e)
                return []
            except httpx.RequestError as e:
                if attempt < self._max_retries:
                    delay = self._retry_delay(attempt)
                    logger.warning(
                        "Error fetching roles for user %s (%s), retrying in %ss",
                        user_id, e, delay,
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                logger.error("Error fetching roles for user %s: %s", user_id, e)
                return []

            if response.status_code == 404:
                return []

            if response.status_code == 429:
                if attempt < self._max_retries:
                    delay = self._retry_delay(attempt)
                    logger.warning(
                        "Rate limited fetching roles for user %s, retrying in %ss",
                        user_id, delay,
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                logger.error(
                    "Rate limited when fetching roles for user %s after %d retries",
                    user_id,
                    self._max_retries,
                )
                return []

            if not response.is_success:
                self._log_failure(f"fetch roles for user {user_id}", response)
                return []

            return _parse_roles(response.json())

    async def fetch_user_role_ids(self, user_id: str) -> List[str]:
        roles = await self.fetch_user_roles(user_id)
        return [role.id for role in roles]

    async def fetch_all_roles(self) -> List[IdentityProviderRole]:
        """Fetch every role defined in the tenant."""
        try:
            response = await self._request("GET", "/roles")
        except ManagementError as e:
            logger.error("Cannot fetch roles: %s", e)
            return []
        except httpx.RequestError as e:
            logger.error("Error fetching roles: %s", e)
            return []

        if not response.is_success:
            self._log_failure("fetch roles", response)
            return []

        return _parse_roles(response.json())

    async def assign_roles(self, user_id: str, role_ids: List[str]) -> bool:
        """
        Assign roles to a user.

        An empty ``role_ids`` is a successful no-op without a request.
        """
        return await self._mutate_roles("POST", user_id, role_ids)

    async def remove_roles(self, user_id: str, role_ids: List[str]) -> bool:
        """
        Remove roles from a user.

        An empty ``role_ids`` is a successful no-op without a request.
        """
        return await self._mutate_roles("DELETE", user_id, role_ids)

    async def _mutate_roles(self, method: str, user_id: str, role_ids: List[str]) -> bool:
        if not role_ids:
            return True

        action = "assign" if method == "POST" else "remove"
        try:
            response = await self._request(
                method,
                f"/users/{user_id}/roles",
                json={"roles": list(role_ids)},
            )
        except ManagementError as e:
            logger.error("Cannot %s roles: %s", action, e)
            return False
        except httpx.RequestError as e:
            logger.error("Error trying to %s roles for user %s: %s", action, user_id, e)
            return False

        if not response.is_success:
            self._log_failure(f"{action} roles for user {user_id}", response)
            return False

        logger.info("%s roles %s for user %s", action.capitalize(), role_ids, user_id)
        return True
