"""
Admin Package

User and role management endpoints for the admin panel.

Modules:
- routes: /api/roles, /api/users and /api/users/{user_id}
- updater: Idempotent role reconciliation used when saving a user
"""

from .updater import AdminRoleUpdater, UpdateResult

__all__ = [
    "AdminRoleUpdater",
    "UpdateResult",
]
