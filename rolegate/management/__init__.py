"""
Management API Package

Client for the identity provider's administrative REST API.

Modules:
- token_cache: Cached client-credentials access token
- client: Typed user/role operations built on the cached token
- errors: Exceptions raised by the token cache
"""

from .client import ManagementApiClient
from .errors import ManagementConfigError, ManagementError, ManagementNetworkError
from .token_cache import ManagementToken, ManagementTokenCache

__all__ = [
    "ManagementApiClient",
    "ManagementToken",
    "ManagementTokenCache",
    "ManagementError",
    "ManagementConfigError",
    "ManagementNetworkError",
]
