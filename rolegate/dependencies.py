"""
FastAPI dependencies resolving the process-wide services created in the
application lifespan (see main.lifespan).
"""

import httpx
from fastapi import Depends, HTTPException, Request, status

from rolegate.admin.updater import AdminRoleUpdater
from rolegate.auth.roles import RoleResolver
from rolegate.config import get_settings
from rolegate.management.client import ManagementApiClient


def _from_state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return service


def get_http_client(request: Request) -> httpx.AsyncClient:
    return _from_state(request, "http_client")


def get_management_client(request: Request) -> ManagementApiClient:
    return _from_state(request, "management_client")


def get_role_resolver(
    client: ManagementApiClient = Depends(get_management_client),
) -> RoleResolver:
    return RoleResolver(client, roles_claim=get_settings().AUTH0_ROLES_CLAIM)


def get_role_updater(
    client: ManagementApiClient = Depends(get_management_client),
) -> AdminRoleUpdater:
    return AdminRoleUpdater(client)
