"""
Post-login role resolution.

Maps a freshly authenticated identity to an internal Role level. Role
assignments live in the identity provider; on first contact the resolver
bootstraps the tenant's baseline "SignedIn" role so route authorization
always has a stable level to compare against.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from rolegate.management.client import ManagementApiClient
from rolegate.models import ROLE_NAMES, IdentityProviderRole, ResolvedRoles, Role

logger = logging.getLogger(__name__)

BASELINE_ROLE_NAME = ROLE_NAMES[Role.SIGNED_IN]

# Highest level first
_PRECEDENCE = (Role.ADMIN, Role.MEMBER, Role.GUEST)


def classify_roles(role_names: Iterable[str]) -> Role:
    """
    Classify provider role names into a single internal level.

    Highest recognised level wins; unknown names count for nothing, so an
    identity with no recognised roles is SIGNED_IN. Matching ignores case.

    Example:
        >>> classify_roles(["Guest", "Admin"])
        <Role.ADMIN: 3>
    """
    names = {name.lower() for name in role_names if name}
    for level in _PRECEDENCE:
        if ROLE_NAMES[level].lower() in names:
            return level
    return Role.SIGNED_IN


def is_baseline_role_name(name: str) -> bool:
    """True for the tenant baseline role ("SignedIn", also spelled "Signedin")."""
    return name.lower() == BASELINE_ROLE_NAME.lower()


def placeholder_role(name: str) -> IdentityProviderRole:
    return IdentityProviderRole(id="", name=name, description="")


class RoleResolver:
    """
    Decide the roles and internal level of a user at login.

    Identities that already carry role names (through a login rule claim)
    are used as-is. Otherwise the roles are read from the Management API.
    Failures never block login: the worst outcome is the baseline level
    with an in-memory placeholder role.
    """

    def __init__(self, management_client: ManagementApiClient, roles_claim: str = "roles") -> None:
        self._client = management_client
        self._roles_claim = roles_claim

    def _claimed_role_names(self, identity: Mapping[str, Any]) -> List[str]:
        raw = identity.get(self._roles_claim)
        if raw is None and self._roles_claim != "roles":
            raw = identity.get("roles")
        if isinstance(raw, str):
            raw = [raw]
        if not raw:
            return []
        return [str(name) for name in raw if name]

    async def resolve(self, identity: Mapping[str, Any]) -> ResolvedRoles:
        """
        Resolve roles for an authenticated identity.

        Args:
            identity: User info from the provider (must carry ``email`` for
                the Management API lookup)

        Returns:
            ResolvedRoles with the role list and highest internal level
        """
        claimed = self._claimed_role_names(identity)
        if claimed:
            roles = [placeholder_role(name) for name in claimed]
            return ResolvedRoles(roles=roles, userRole=classify_roles(claimed))

        email = identity.get("email")
        user_id: Optional[str] = None
        roles: List[IdentityProviderRole] = []

        if email:
            user_id = await self._client.find_user_id_by_email(email)
            if user_id:
                roles = await self._client.fetch_user_roles(user_id)
                logger.debug("Fetched %d roles for %s", len(roles), email)
            else:
                logger.info("Could not find user id for %s, treating as new user", email)
        else:
            logger.warning("Identity has no email, skipping role lookup")

        if not roles:
            roles = [await self._provision_baseline_role(user_id)]

        return ResolvedRoles(
            roles=roles,
            userRole=classify_roles(role.name for role in roles),
        )

    async def _provision_baseline_role(self, user_id: Optional[str]) -> IdentityProviderRole:
        """
        Grant the tenant baseline role to a user without roles.

        Falls back to a placeholder when the role is missing from the tenant,
        the user id is unknown or the assignment fails. Nothing is persisted
        in that case, so the grant is retried on the next login.
        """
        if not user_id:
            return placeholder_role(BASELINE_ROLE_NAME)

        tenant_roles = await self._client.fetch_all_roles()
        baseline = next(
            (role for role in tenant_roles if is_baseline_role_name(role.name)),
            None,
        )
        if baseline is None:
            logger.warning("Tenant has no %s role, using placeholder", BASELINE_ROLE_NAME)
            return placeholder_role(BASELINE_ROLE_NAME)

        if await self._client.assign_roles(user_id, [baseline.id]):
            logger.info("Assigned %s role to new user %s", baseline.name, user_id)
            return baseline

        logger.warning(
            "Failed to assign %s role to user %s, using placeholder",
            baseline.name,
            user_id,
        )
        return placeholder_role(BASELINE_ROLE_NAME)
