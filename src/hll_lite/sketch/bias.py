"""Nearest-neighbour bias lookup against a CorrectionTable.

The bias for a raw estimate E is the mean of the biases at the six
reference points closest to E. The reference points are ascending (a
few published rows only nearly so, and are used as given), so the six
closest form a contiguous window, found with two pointers:

    1. partition point i = first index with raw_estimates[i] >= E
    2. start from [max(i - 6, 0), min(i + 6, n))
    3. while the window is wider than 6, drop the end farther from E;
       on a tie drop the high end

The tie rule and the clamping at both ends of the array decide which
window wins near the table boundaries, so they are kept exactly as
above. The mean is summed left to right over the window so the result
is bit-for-bit reproducible.
"""

from __future__ import annotations

import bisect
from typing import Sequence

from hll_lite.sketch.tables import NEIGHBORS, CorrectionTable


def nearest_window(estimate: float, raw_estimates: Sequence[float]) -> range:
    """Indices of the NEIGHBORS reference points nearest to estimate."""
    n = len(raw_estimates)
    if n < NEIGHBORS:
        raise ValueError(f"Need at least {NEIGHBORS} reference points, got {n}")
    pivot = bisect.bisect_left(raw_estimates, estimate)
    lo = max(pivot - NEIGHBORS, 0)
    hi = min(pivot + NEIGHBORS, n)
    while hi - lo != NEIGHBORS:
        # 2E - low > high  <=>  E - low > high - E
        if 2.0 * estimate - raw_estimates[lo] > raw_estimates[hi - 1]:
            lo += 1
        else:
            hi -= 1
    return range(lo, hi)


def estimate_bias(estimate: float, table: CorrectionTable) -> float:
    window = nearest_window(estimate, table.raw_estimates)
    total = 0.0
    for i in window:
        total += table.biases[i]
    return total / NEIGHBORS
