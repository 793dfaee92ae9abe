"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment variables before importing application modules
os.environ["AUTH0_DOMAIN"] = "test-tenant.auth0.com"
os.environ["AUTH0_CLIENT_ID"] = "test-client-id"
os.environ["AUTH0_CLIENT_SECRET"] = "test-client-secret"
os.environ["AUTH0_REDIRECT_URI"] = "http://localhost:8080/auth/callback"
os.environ["SESSION_SECRET"] = "test-session-secret-0123456789abcdef"
os.environ["LOG_LEVEL"] = "DEBUG"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def test_settings():
    """Provide test settings."""
    from rolegate.config import Settings

    return Settings(
        AUTH0_DOMAIN="test-tenant.auth0.com",
        AUTH0_CLIENT_ID="test-client-id",
        AUTH0_CLIENT_SECRET="test-client-secret",
        SESSION_SECRET="test-session-secret-0123456789abcdef",
    )


@pytest.fixture
def unconfigured_settings():
    """Settings without Management API credentials."""
    from rolegate.config import Settings

    return Settings(
        AUTH0_DOMAIN=None,
        AUTH0_CLIENT_ID=None,
        AUTH0_CLIENT_SECRET=None,
        SESSION_SECRET="test-session-secret-0123456789abcdef",
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
