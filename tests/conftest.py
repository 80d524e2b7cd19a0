"""Shared pytest fixtures for gateway tests."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer/CI environment variables out of settings under test."""
    for name in (
        "DOCMOST_BASE_URL", "DOCMOST_API_TOKEN", "DOCMOST_EMAIL", "DOCMOST_PASSWORD",
        "DOCMOST_REQUEST_TIMEOUT_S", "DOCMOST_MAX_SIDEBAR_PAGES",
        "READ_ONLY", "PORT", "HOST", "LOG_JSON", "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
