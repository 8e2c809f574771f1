"""Shared fixtures."""

import pytest

from wwfm import cache


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()
