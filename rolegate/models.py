"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the service.

Models are organized by functional area:
- Role levels and identity provider roles
- Session models (issued at login)
- User management models (admin API payloads)
- Health and error models
"""

from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Roles
# ============================================================================

class Role(IntEnum):
    """Internal access levels, ordered lowest to highest."""
    SIGNED_IN = 0  # Authenticated, no recognised role
    GUEST = 1
    MEMBER = 2
    ADMIN = 3


# Provider-side role names, keyed by the internal level they grant.
ROLE_NAMES: Dict[Role, str] = {
    Role.SIGNED_IN: "SignedIn",
    Role.GUEST: "Guest",
    Role.MEMBER: "Member",
    Role.ADMIN: "Admin",
}


class IdentityProviderRole(BaseModel):
    """Role as returned by the identity provider's Management API."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Provider role id (empty for placeholders)")
    name: str = Field(..., description="Human-readable role name")
    description: str = Field(default="", description="Role description")


class ResolvedRoles(BaseModel):
    """Outcome of post-login role resolution."""
    roles: List[IdentityProviderRole] = Field(default_factory=list)
    userRole: Role = Field(default=Role.SIGNED_IN)


# ============================================================================
# Session Models
# ============================================================================

class SessionRecord(BaseModel):
    """Session issued once per successful login."""
    model_config = ConfigDict(frozen=True)

    identity_email: str = Field(..., description="Email of the authenticated identity")
    roles: List[IdentityProviderRole] = Field(default_factory=list)
    userRole: Role = Field(..., description="Highest internal role level")
    loggedInAt: int = Field(..., description="Login time in epoch milliseconds")


# ============================================================================
# User Management Models
# ============================================================================

class ManagedUser(BaseModel):
    """Admin-panel projection of a provider user."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    nickname: Optional[str] = None
    picture: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None
    logins_count: int = 0
    roles: List[IdentityProviderRole] = Field(default_factory=list)
    isApproved: bool = False
    app_metadata: Dict[str, Any] = Field(default_factory=dict)
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class UsersPage(BaseModel):
    """One page of raw users from the Management API."""
    users: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class UsersResponse(BaseModel):
    success: bool = True
    users: List[ManagedUser]
    total: int
    page: int
    per_page: int


class RolesResponse(BaseModel):
    success: bool = True
    roles: List[IdentityProviderRole]


class UpdateUserRequest(BaseModel):
    """Body of PUT /api/users/{userId}."""
    roles: List[str] = Field(..., description="Desired provider role ids")
    isApproved: Optional[bool] = Field(
        default=None,
        description="Approval flag stored in app_metadata; omitted leaves it unchanged",
    )


class UpdateUserResponse(BaseModel):
    success: bool
    message: str


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    management_configured: bool = Field(..., description="Whether Management API credentials are present")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")
