"""
Shared pytest fixtures.
"""

import pytest

from accessguard.config import config


@pytest.fixture(autouse=True)
def fresh_config_cache():
    """Cached configuration values must not leak between tests."""
    config.clear_cache()
    yield
    config.clear_cache()
