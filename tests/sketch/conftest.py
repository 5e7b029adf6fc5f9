"""Shared helpers for HyperLogLog sketch tests."""
from __future__ import annotations

import pytest

from hll_lite.sketch.hashing import SeedPair
from hll_lite.sketch.tables import TABLES_ENV_VAR, CorrectionTable, reset_tables


SEED = 0x0123456789ABCDEF_FEDCBA9876543210
OTHER_SEED = 0x0F0E0D0C0B0A0908_0706050403020100

KEYS_A = ["test1", "test2", "test3", "test2", "test2", "test2"]
KEYS_B = ["test3", "test4", "test4", "test4", "test4", "test1"]


def linear_table(
    precision: int = 4,
    points: int = 20,
    bias: float | None = None,
    threshold: float = 10.0,
) -> CorrectionTable:
    """Reference points 0, 1, ..., points-1; bias i at point i unless fixed."""
    return CorrectionTable(
        precision=precision,
        raw_estimates=tuple(float(i) for i in range(points)),
        biases=tuple(float(i) if bias is None else bias for i in range(points)),
        threshold=threshold,
    )


@pytest.fixture
def seed() -> SeedPair:
    return SeedPair.from_int(SEED)


@pytest.fixture
def clean_tables(monkeypatch):
    """Empty table cache with no table file configured."""
    monkeypatch.delenv(TABLES_ENV_VAR, raising=False)
    reset_tables()
    yield
    reset_tables()
