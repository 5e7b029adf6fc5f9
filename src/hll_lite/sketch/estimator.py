"""Cardinality estimation from a register array.

Three regimes, chosen in this order:

    LINEAR_COUNTING  some registers are still zero and the linear
                     counting estimate m * ln(m / zeros) is at most the
                     precision's threshold
    BIAS_CORRECTED   raw estimate E <= 5m, return E - bias(E)
    RAW              E > 5m, return E as is

Each formula is a plain function so the regimes can be checked on
their own.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Sequence

from hll_lite.sketch.bias import estimate_bias
from hll_lite.sketch.tables import get_table, threshold_for


class Regime(enum.Enum):
    LINEAR_COUNTING = "linear_counting"
    BIAS_CORRECTED = "bias_corrected"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class RegimeEstimate:
    regime: Regime
    value: float


def linear_counting(m: int, zeros: int) -> float:
    return m * math.log(m / zeros)


def harmonic_estimate(alpha: float, registers: Sequence[int]) -> float:
    """alpha * m^2 / sum(2^-M[j])."""
    m = len(registers)
    indicator = 0.0
    for r in registers:
        indicator += 2.0 ** -r
    return alpha * m * m / indicator


def select_regime(
    precision: int,
    alpha: float,
    registers: Sequence[int],
    zeros: int,
) -> RegimeEstimate:
    m = len(registers)
    if zeros > 0:
        linear = linear_counting(m, zeros)
        if linear <= threshold_for(precision):
            return RegimeEstimate(Regime.LINEAR_COUNTING, linear)
    raw = harmonic_estimate(alpha, registers)
    if raw <= 5 * m:
        corrected = raw - estimate_bias(raw, get_table(precision))
        return RegimeEstimate(Regime.BIAS_CORRECTED, corrected)
    return RegimeEstimate(Regime.RAW, raw)
