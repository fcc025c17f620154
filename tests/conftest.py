"""
Shared pytest configuration.

Async tests use pytest-asyncio markers; nothing here touches the network
or real time - `sleep` is always injected as an AsyncMock.
"""

from unittest.mock import AsyncMock

import pytest


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "asyncio: marks tests as async (handled by pytest-asyncio)",
    )


@pytest.fixture
def no_sleep():
    """Drop-in for asyncio.sleep that records requested delays and returns immediately."""
    return AsyncMock(return_value=None)
