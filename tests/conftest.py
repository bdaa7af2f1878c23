"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from llamaterminal.config import reset_config

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _fresh_config():
    """Drop the cached global config between tests."""
    reset_config()
    yield
    reset_config()
