"""
Admin Routes - User and Role Management
=======================================

Endpoints consumed by the admin panel. All of them require a session with
the Admin role.

Endpoints:
----------
- GET /api/roles: Every role defined in the tenant (role picker)
- GET /api/users: Paginated users with their roles and approval flag
- PUT /api/users/{user_id}: Replace a user's roles and set approval
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from rolegate.admin.updater import AdminRoleUpdater
from rolegate.auth.session import require_role
from rolegate.dependencies import get_management_client, get_role_updater
from rolegate.management.client import ManagementApiClient
from rolegate.models import (
    ManagedUser,
    Role,
    RolesResponse,
    UpdateUserRequest,
    UpdateUserResponse,
    UsersResponse,
)

logger = logging.getLogger(__name__)

admin_router = APIRouter(
    prefix="/api",
    tags=["admin"],
    dependencies=[Depends(require_role(Role.ADMIN))],
)


def is_approved(app_metadata: Optional[Dict[str, Any]]) -> bool:
    """Approval is stored as ``app_metadata.approved`` (bool or "true")."""
    approved = (app_metadata or {}).get("approved")
    return approved is True or approved == "true"


async def _to_managed_user(client: ManagementApiClient, user: Dict[str, Any]) -> ManagedUser:
    app_metadata = user.get("app_metadata") or {}
    return ManagedUser(
        id=user["user_id"],
        email=user.get("email"),
        name=user.get("name"),
        nickname=user.get("nickname"),
        picture=user.get("picture"),
        created_at=user.get("created_at"),
        last_login=user.get("last_login"),
        logins_count=user.get("logins_count") or 0,
        roles=await client.fetch_user_roles(user["user_id"]),
        isApproved=is_approved(app_metadata),
        app_metadata=app_metadata,
        user_metadata=user.get("user_metadata") or {},
    )


# ============================================================================
# Endpoints
# ============================================================================

@admin_router.get("/roles", response_model=RolesResponse)
async def list_roles(client: ManagementApiClient = Depends(get_management_client)):
    roles = await client.fetch_all_roles()
    if not roles:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch roles from identity provider",
        )
    return RolesResponse(success=True, roles=roles)


@admin_router.get("/users", response_model=UsersResponse)
async def list_users(
    page: int = Query(0, ge=0),
    per_page: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, description="Email substring"),
    client: ManagementApiClient = Depends(get_management_client),
):
    """
    List users with their roles.

    Roles are fetched per user concurrently; a failed role fetch shows the
    user without roles rather than failing the page.
    """
    users_page = await client.list_users(page=page, per_page=per_page, search=search)
    if users_page is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users from identity provider",
        )

    users = await asyncio.gather(
        *(_to_managed_user(client, user) for user in users_page.users)
    )

    return UsersResponse(
        success=True,
        users=list(users),
        total=users_page.total,
        page=page,
        per_page=per_page,
    )


@admin_router.put("/users/{user_id}", response_model=UpdateUserResponse)
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    updater: AdminRoleUpdater = Depends(get_role_updater),
):
    result = await updater.update_user(user_id, body.roles, body.isApproved)

    if not result.success:
        logger.error("Updating user %s failed: %s", user_id, result.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.message,
        )

    return UpdateUserResponse(success=True, message=result.message)
