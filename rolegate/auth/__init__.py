"""
Authentication Package

This package handles authentication and authorization for the service
using an Auth0-style identity provider and OAuth 2.0.

Key responsibilities:
- Authorization-code login flow and callback handling
- Post-login role resolution against the provider's Management API
- Signed session issuance and role-based route protection

Modules:
- routes: Public authentication endpoints (/auth/login, /auth/callback, etc.)
- utils: Code exchange and user info helpers
- roles: Role classification and first-login provisioning
- session: Session issuance, verification and FastAPI dependencies

The authentication flow:
1. Browser initiates login via /auth/login
2. User authenticates with the identity provider
3. Service receives the authorization code via /auth/callback
4. Service resolves the user's roles and issues a session
5. Browser is redirected back into the application
"""

from .roles import RoleResolver, classify_roles
from .session import get_current_session, issue_session, require_role

__all__ = [
    "RoleResolver",
    "classify_roles",
    "get_current_session",
    "issue_session",
    "require_role",
]
