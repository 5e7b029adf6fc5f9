"""Parameter derivation for HyperLogLog counters.

A counter is sized from a target relative error. The standard error of
HyperLogLog is about 1.04 / sqrt(m), so solving for m and rounding up to
a power of two gives the number of registers:

    p = ceil(log2((1.04 / error_rate) ** 2)),   m = 2 ** p

Only 4 <= p <= 18 is supported. Below 4 the estimator is useless, above
18 the empirical correction data does not exist.
"""

from __future__ import annotations

import math

MIN_PRECISION = 4
MAX_PRECISION = 18


def check_precision(p: int) -> int:
    if not (MIN_PRECISION <= p <= MAX_PRECISION):
        raise ValueError(
            f"Precision p must be {MIN_PRECISION}..{MAX_PRECISION}, got {p}"
        )
    return p


def precision_for_error_rate(error_rate: float) -> int:
    """Smallest precision whose standard error is at most error_rate."""
    if not (0.0 < error_rate < 1.0):
        raise ValueError(f"error_rate must be in (0, 1), got {error_rate}")
    p = math.ceil(math.log2((1.04 / error_rate) ** 2))
    if not (MIN_PRECISION <= p <= MAX_PRECISION):
        raise ValueError(
            f"error_rate {error_rate} needs precision {p}, outside the "
            f"supported range {MIN_PRECISION}..{MAX_PRECISION}"
        )
    return p


def alpha_for_precision(p: int) -> float:
    """Bias-correction constant alpha_m from the HLL paper."""
    check_precision(p)
    if p == 4:
        return 0.673
    if p == 5:
        return 0.697
    if p == 6:
        return 0.709
    return 0.7213 / (1.0 + 1.079 / (1 << p))


def standard_error(p: int) -> float:
    """Theoretical relative standard error for 2^p registers."""
    return 1.04 / math.sqrt(1 << p)
