"""Exceptions raised while talking to the identity provider's Management API."""

from typing import Optional


class ManagementError(Exception):
    """Base exception for Management API failures."""
    pass


class ManagementConfigError(ManagementError):
    """Required domain or client credentials are not configured."""
    pass


class ManagementNetworkError(ManagementError):
    """Transport failure or non-2xx response from the provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
