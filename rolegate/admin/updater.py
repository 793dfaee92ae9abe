"""
Role reconciliation for admin user edits.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from rolegate.management.client import ManagementApiClient

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    success: bool
    message: str
    roles_changed: bool = False
    warnings: List[str] = field(default_factory=list)


class AdminRoleUpdater:
    """
    Apply an administrator's desired role set and approval flag to a user.

    Roles are compared as sets. When they differ, every current role is
    removed and every desired role assigned (full replace). The two calls
    are not atomic and nothing is rolled back.
    """

    def __init__(self, management_client: ManagementApiClient) -> None:
        self._client = management_client

    async def update_user(
        self,
        user_id: str,
        desired_role_ids: List[str],
        is_approved: Optional[bool],
    ) -> UpdateResult:
        """
        Reconcile roles and approval for one user.

        Args:
            user_id: Provider user id
            desired_role_ids: Role ids the user should end up with
            is_approved: Value stored under app_metadata.approved; None keeps
                the stored value

        Returns:
            UpdateResult; failure only when removing or assigning roles fails
        """
        current_role_ids = await self._client.fetch_user_role_ids(user_id)
        roles_changed = sorted(current_role_ids) != sorted(desired_role_ids)

        if roles_changed:
            if not await self._client.remove_roles(user_id, current_role_ids):
                return UpdateResult(
                    success=False,
                    message="Failed to remove current user roles",
                    roles_changed=True,
                )

            if not await self._client.assign_roles(user_id, desired_role_ids):
                return UpdateResult(
                    success=False,
                    message="Failed to assign new user roles",
                    roles_changed=True,
                )

            logger.info(
                "Replaced roles of user %s: %s -> %s",
                user_id,
                current_role_ids,
                desired_role_ids,
            )

        result = UpdateResult(
            success=True,
            message="User updated successfully",
            roles_changed=roles_changed,
        )

        if is_approved is None:
            return result

        metadata_ok = await self._client.update_user_metadata(
            user_id, {"app_metadata": {"approved": is_approved}}
        )
        if not metadata_ok:
            warning = "Failed to update user approval status, but roles were updated"
            logger.warning("%s (user %s)", warning, user_id)
            result.warnings.append(warning)

        return result
