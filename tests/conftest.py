"""
Shared fixtures for the Lightdash MCP test suite.
"""

import pytest

from lightdash_mcp.lightdash import retry
from lightdash_mcp.lightdash.client import LightdashClient

BASE_URL = "https://lightdash.test"
API_KEY = "test-api-key"


@pytest.fixture(autouse=True)
def lightdash_env(monkeypatch):
    """Deterministic configuration for every test."""
    monkeypatch.setenv("LIGHTDASH_API_URL", BASE_URL)
    monkeypatch.setenv("LIGHTDASH_API_KEY", API_KEY)
    monkeypatch.setenv("MAX_RETRIES", "3")
    monkeypatch.setenv("RETRY_DELAY", "100")


@pytest.fixture(autouse=True)
def retry_waits(monkeypatch):
    """Record retry waits instead of sleeping."""
    waits = []

    async def fake_wait(delay_ms):
        waits.append(delay_ms)

    monkeypatch.setattr(retry, "_wait", fake_wait)
    return waits


@pytest.fixture
def client():
    return LightdashClient(BASE_URL, API_KEY)
