"""Pytest configuration and fixtures for offline tile tests."""

import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from tiles.cache import TileCache  # noqa: E402


@pytest.fixture
def cache(tmp_path):
    """Create TileCache instance in a temporary directory."""
    tc = TileCache(cache_dir=tmp_path / 'tiles')
    yield tc
    tc.close()
