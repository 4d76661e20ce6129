"""
Pytest configuration and fixtures for the cache test suite.

Every fixture builds its own registry with an injected clock, so tests
never share cache state and never sleep to reach an expiry.
"""

import os
from unittest.mock import patch

import pytest

from lotto_cache.core.manager import CacheManager
from lotto_cache.core.registry import CacheRegistry
from lotto_cache.utils.cache.persistence import MemoryMedium

from .mocks import FakeClock, make_settings


@pytest.fixture(autouse=True)
def isolated_environment():
    """Keep the developer's environment and config/.env out of the tests."""
    with patch.dict(os.environ, {'ENVIRONMENT': 'testing'}, clear=True):
        yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_medium():
    return MemoryMedium()


@pytest.fixture
def registry(clock, memory_medium):
    """Registry over an in-memory medium with the default namespaces."""
    registry = CacheRegistry(make_settings(), medium=memory_medium, clock=clock)
    yield registry
    registry.destroy()


@pytest.fixture
def manager(registry):
    return CacheManager(registry)
