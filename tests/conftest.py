"""
Shared fixtures for pasty tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pasty.token import service as service_module
from pasty.token.service import TokenService


class Clock:
    """Controllable replacement for the service clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock(monkeypatch):
    """Freeze the token service clock at a known instant."""
    frozen = Clock(datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(service_module, "_now", frozen)
    return frozen


@pytest.fixture
def public_service():
    """A public-purpose service with fresh keys."""
    return TokenService("public")


@pytest.fixture
def local_service():
    """A local-purpose service with fresh keys."""
    return TokenService("local")
