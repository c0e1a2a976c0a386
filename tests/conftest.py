from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from tests._fixtures.pool_builder import PoolBuilder

FIXED_TIME = datetime(2024, 5, 1, 12, 30, 0, tzinfo=UTC)


@pytest.fixture
def pool_builder(tmp_path: Path) -> PoolBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return PoolBuilder(tmp_path)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME
