"""
Tests for post-login role resolution.

Covers role classification, the claimed-roles shortcut, Management API
lookups and first-login provisioning of the baseline role.
"""

from typing import Dict, List
from unittest.mock import AsyncMock

import pytest

from rolegate.auth.roles import RoleResolver, classify_roles, is_baseline_role_name
from rolegate.management.client import ManagementApiClient
from rolegate.models import IdentityProviderRole, Role

SIGNED_IN = IdentityProviderRole(id="r1", name="SignedIn", description="Baseline")
ADMIN = IdentityProviderRole(id="r2", name="Admin", description="Administrators")


def mock_client(user_id="auth0|1", user_roles=None, tenant_roles=None, assign_ok=True):
    client = AsyncMock(spec=ManagementApiClient)
    client.find_user_id_by_email.return_value = user_id
    client.fetch_user_roles.return_value = user_roles or []
    client.fetch_all_roles.return_value = tenant_roles if tenant_roles is not None else [SIGNED_IN, ADMIN]
    client.assign_roles.return_value = assign_ok
    return client


class StatefulManagementClient:
    """In-memory provider keeping role assignments between calls."""

    def __init__(self, tenant_roles: List[IdentityProviderRole]):
        self.tenant_roles = tenant_roles
        self.assignments: Dict[str, List[IdentityProviderRole]] = {}
        self.assign_calls = []

    async def find_user_id_by_email(self, email):
        return f"auth0|{email}"

    async def fetch_user_roles(self, user_id):
        return list(self.assignments.get(user_id, []))

    async def fetch_all_roles(self):
        return list(self.tenant_roles)

    async def assign_roles(self, user_id, role_ids):
        self.assign_calls.append((user_id, list(role_ids)))
        by_id = {role.id: role for role in self.tenant_roles}
        self.assignments.setdefault(user_id, []).extend(by_id[i] for i in role_ids)
        return True


# ============================================================================
# Classification
# ============================================================================

class TestClassifyRoles:

    @pytest.mark.parametrize("names", [
        ["Admin", "Guest"],
        ["Guest", "Admin"],
        ["Admin"],
        ["Member", "Admin", "SignedIn"],
    ])
    def test_admin_wins(self, names):
        assert classify_roles(names) == Role.ADMIN

    def test_member_beats_guest(self):
        assert classify_roles(["Guest", "Member"]) == Role.MEMBER

    def test_guest(self):
        assert classify_roles(["Guest"]) == Role.GUEST

    @pytest.mark.parametrize("names", [[], ["Unknown"], ["SignedIn"], [""]])
    def test_baseline(self, names):
        assert classify_roles(names) == Role.SIGNED_IN

    def test_case_insensitive(self):
        assert classify_roles(["admin"]) == Role.ADMIN

    def test_role_levels_are_ordered(self):
        assert Role.SIGNED_IN < Role.GUEST < Role.MEMBER < Role.ADMIN

    @pytest.mark.parametrize("name,expected", [
        ("SignedIn", True),
        ("Signedin", True),
        ("signedin", True),
        ("Signed In", False),
        ("Guest", False),
    ])
    def test_baseline_role_name(self, name, expected):
        assert is_baseline_role_name(name) is expected


# ============================================================================
# Resolution
# ============================================================================

@pytest.mark.asyncio
async def test_claimed_roles_skip_management_lookup():
    client = mock_client()
    resolver = RoleResolver(client)

    resolved = await resolver.resolve({"email": "a@x.com", "roles": ["Guest", "Admin"]})

    assert resolved.userRole == Role.ADMIN
    assert resolved.roles == [
        IdentityProviderRole(id="", name="Guest", description=""),
        IdentityProviderRole(id="", name="Admin", description=""),
    ]
    client.find_user_id_by_email.assert_not_called()
    client.fetch_user_roles.assert_not_called()


@pytest.mark.asyncio
async def test_custom_roles_claim():
    client = mock_client()
    resolver = RoleResolver(client, roles_claim="https://app.example.com/roles")

    resolved = await resolver.resolve({
        "email": "a@x.com",
        "https://app.example.com/roles": ["Member"],
    })

    assert resolved.userRole == Role.MEMBER
    client.find_user_id_by_email.assert_not_called()


@pytest.mark.asyncio
async def test_roles_fetched_from_management_api():
    member = IdentityProviderRole(id="r3", name="Member", description="")
    client = mock_client(user_roles=[member])
    resolver = RoleResolver(client)

    resolved = await resolver.resolve({"email": "a@x.com"})

    assert resolved.userRole == Role.MEMBER
    assert resolved.roles == [member]
    client.find_user_id_by_email.assert_awaited_once_with("a@x.com")
    client.fetch_user_roles.assert_awaited_once_with("auth0|1")
    client.assign_roles.assert_not_called()


@pytest.mark.asyncio
async def test_unrecognised_roles_resolve_to_baseline_without_provisioning():
    other = IdentityProviderRole(id="r9", name="Beta Tester", description="")
    client = mock_client(user_roles=[other])

    resolved = await RoleResolver(client).resolve({"email": "a@x.com"})

    assert resolved.userRole == Role.SIGNED_IN
    assert resolved.roles == [other]
    client.fetch_all_roles.assert_not_called()


@pytest.mark.asyncio
async def test_first_login_assigns_baseline_role():
    client = mock_client(user_roles=[])

    resolved = await RoleResolver(client).resolve({"email": "a@x.com", "roles": []})

    assert resolved.userRole == Role.SIGNED_IN
    assert resolved.roles == [SIGNED_IN]
    client.assign_roles.assert_awaited_once_with("auth0|1", ["r1"])


@pytest.mark.asyncio
async def test_first_login_accepts_alternate_spelling():
    signedin = IdentityProviderRole(id="r7", name="Signedin", description="")
    client = mock_client(tenant_roles=[ADMIN, signedin])

    resolved = await RoleResolver(client).resolve({"email": "a@x.com"})

    assert resolved.roles == [signedin]
    client.assign_roles.assert_awaited_once_with("auth0|1", ["r7"])


@pytest.mark.asyncio
async def test_failed_assignment_falls_back_to_placeholder():
    client = mock_client(assign_ok=False)

    resolved = await RoleResolver(client).resolve({"email": "a@x.com"})

    assert resolved.userRole == Role.SIGNED_IN
    assert resolved.roles == [IdentityProviderRole(id="", name="SignedIn", description="")]


@pytest.mark.asyncio
async def test_missing_tenant_role_falls_back_to_placeholder():
    client = mock_client(tenant_roles=[ADMIN])

    resolved = await RoleResolver(client).resolve({"email": "a@x.com"})

    assert resolved.roles == [IdentityProviderRole(id="", name="SignedIn", description="")]
    client.assign_roles.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_user_gets_placeholder_without_assignment():
    client = mock_client(user_id=None)

    resolved = await RoleResolver(client).resolve({"email": "new@x.com"})

    assert resolved.userRole == Role.SIGNED_IN
    assert resolved.roles[0].name == "SignedIn"
    assert resolved.roles[0].id == ""
    client.fetch_user_roles.assert_not_called()
    client.assign_roles.assert_not_called()


@pytest.mark.asyncio
async def test_management_outage_still_resolves_baseline():
    client = mock_client(user_id=None, tenant_roles=[])

    resolved = await RoleResolver(client).resolve({"email": "a@x.com"})

    assert resolved.userRole == Role.SIGNED_IN


@pytest.mark.asyncio
async def test_first_login_provisioning_is_idempotent():
    client = StatefulManagementClient([SIGNED_IN, ADMIN])
    resolver = RoleResolver(client)

    first = await resolver.resolve({"email": "a@x.com"})
    second = await resolver.resolve({"email": "a@x.com"})

    assert first.roles == [SIGNED_IN]
    assert second.roles == [SIGNED_IN]
    assert client.assign_calls == [("auth0|a@x.com", ["r1"])]


@pytest.mark.asyncio
async def test_end_to_end_first_login():
    client = mock_client(
        user_roles=[],
        tenant_roles=[
            IdentityProviderRole(id="r1", name="SignedIn", description=""),
            IdentityProviderRole(id="r2", name="Admin", description=""),
        ],
    )

    resolved = await RoleResolver(client).resolve({"email": "a@x.com", "roles": []})

    assert resolved.model_dump() == {
        "roles": [{"id": "r1", "name": "SignedIn", "description": ""}],
        "userRole": Role.SIGNED_IN,
    }
