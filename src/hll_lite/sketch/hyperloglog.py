"""HyperLogLog cardinality estimator.

Answers "how many distinct elements have been seen?" in a fixed amount
of memory: one byte per register, 2^p registers, for a relative
standard error of about 1.04 / sqrt(2^p).

Each element is hashed with a keyed 64-bit hash. The low p bits pick a
register; the remaining 64 - p bits feed the rank, the position of the
first 1-bit counted from the top of that window (1 when the top bit is
set, 65 - p when the window is all zeros). A register keeps the maximum
rank it has seen. The estimate combines the registers through a
harmonic mean, with the small- and mid-range corrections from HLL++
(see estimator.py).

Two counters can be merged only when they share a seed: the seed
decides which register an element lands in, so counters with different
seeds describe incomparable register layouts.

References:
    Flajolet et al., "HyperLogLog: the analysis of a near-optimal
    cardinality estimation algorithm", 2007.
    Heule et al., "HyperLogLog in Practice", 2013.
"""

from __future__ import annotations

import array
import logging
from typing import Iterable

from hll_lite.sketch.estimator import Regime, RegimeEstimate, select_regime
from hll_lite.sketch.hashing import KeyedHasher, SeedPair
from hll_lite.sketch.params import (
    alpha_for_precision,
    check_precision,
    precision_for_error_rate,
    standard_error,
)

log = logging.getLogger(__name__)

_MAX_HASH = (1 << 64) - 1


class IncompatibleSketchError(Exception):
    """Raised when merging counters that were built with different seeds."""

    def __init__(self, left: SeedPair, right: SeedPair) -> None:
        self.left = left
        self.right = right
        super().__init__(
            "Cannot merge HyperLogLog counters built with different seeds; "
            "create the second counter with from_template() or pass the "
            "same seed to both"
        )


def _rank(w: int, max_width: int) -> int:
    """Leading zeros of w within a max_width-bit window, plus one."""
    rank = max_width - w.bit_length() + 1
    if rank <= 0:
        raise ValueError(f"Hash remainder {w:#x} overflows a {max_width}-bit window")
    return rank


def _coerce_seed(seed: int | SeedPair | None) -> SeedPair:
    if seed is None:
        return SeedPair.random()
    if isinstance(seed, SeedPair):
        return seed
    return SeedPair.from_int(seed)


class HyperLogLog:
    """HyperLogLog cardinality estimator.

    Parameters:
        error_rate: Target relative standard error, strictly between 0
            and 1. Decides the precision p (4..18) and so the number of
            registers 2^p.
        seed: 128-bit int or SeedPair keying the hash. Counters that
            will be merged must share it. None draws a random seed.

    Typical error rates:
        0.033  -> p=10, 1024 registers, ~1 KB
        0.0163 -> p=12, 4096 registers, ~4 KB
        0.0041 -> p=16, 65536 registers, ~64 KB

    Not thread-safe. Use one counter per worker and merge them.
    """

    __slots__ = ("_p", "_m", "_alpha", "_hasher", "_registers")

    def __init__(self, error_rate: float, seed: int | SeedPair | None = None) -> None:
        self._init(precision_for_error_rate(error_rate), _coerce_seed(seed))

    def _init(self, p: int, seed: SeedPair) -> None:
        check_precision(p)
        self._p = p
        self._m = 1 << p
        self._alpha = alpha_for_precision(p)
        self._hasher = KeyedHasher(seed)
        self._registers = array.array("B", bytes(self._m))

    @classmethod
    def from_precision(cls, precision: int, seed: int | SeedPair | None = None) -> HyperLogLog:
        """Build a counter with exactly 2^precision registers."""
        check_precision(precision)
        hll = cls.__new__(cls)
        hll._init(precision, _coerce_seed(seed))
        return hll

    @classmethod
    def from_keys(cls, error_rate: float, key0: int, key1: int) -> HyperLogLog:
        return cls(error_rate, SeedPair(key0, key1))

    @classmethod
    def from_template(cls, template: HyperLogLog) -> HyperLogLog:
        """Empty counter with the template's precision and seed.

        The result is always mergeable with the template.
        """
        return cls.from_precision(template._p, template.seed)

    @property
    def precision(self) -> int:
        return self._p

    @property
    def num_registers(self) -> int:
        return self._m

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def seed(self) -> SeedPair:
        return self._hasher.seed

    @property
    def registers(self) -> bytes:
        """Snapshot of the register array."""
        return self._registers.tobytes()

    def insert(self, value: object) -> None:
        """Add a value. Supported types are listed in hashing.encode_value."""
        self.insert_hash(self._hasher.hash_value(value))

    def insert_hash(self, x: int) -> None:
        """Add a precomputed unsigned 64-bit hash."""
        if not (0 <= x <= _MAX_HASH):
            raise ValueError(f"Hash value must be an unsigned 64-bit integer, got {x}")
        idx = x & (self._m - 1)
        rank = _rank(x >> self._p, 64 - self._p)
        if rank > self._registers[idx]:
            self._registers[idx] = rank

    def update(self, values: Iterable[object]) -> None:
        for value in values:
            self.insert(value)

    def _evaluate(self) -> RegimeEstimate:
        return select_regime(
            self._p, self._alpha, self._registers, self._registers.count(0)
        )

    def estimate(self) -> float:
        """Estimated number of distinct values inserted."""
        return self._evaluate().value

    def regime(self) -> Regime:
        """Which estimation regime the current registers fall in."""
        return self._evaluate().regime

    def is_empty(self) -> bool:
        return self.estimate() == 0.0

    def merge(self, other: HyperLogLog) -> None:
        """Merge another counter into this one (union operation).

        Everything is checked before the first register is written, so a
        failed merge leaves this counter untouched.
        """
        if self._p != other._p or self._m != other._m:
            raise ValueError(
                f"Cannot merge HLLs with different precision: "
                f"{self._p} vs {other._p}"
            )
        if self.seed != other.seed:
            raise IncompatibleSketchError(self.seed, other.seed)
        mine = self._registers
        theirs = other._registers
        for i in range(self._m):
            if theirs[i] > mine[i]:
                mine[i] = theirs[i]
        log.debug("Merged HLL p=%d, %d zero registers left", self._p, mine.count(0))

    def union(self, other: HyperLogLog) -> HyperLogLog:
        """New counter for the union; neither operand changes."""
        result = HyperLogLog.from_template(self)
        result.merge(self)
        result.merge(other)
        return result

    def clear(self) -> None:
        """Zero every register, keeping precision and seed."""
        self._registers[:] = array.array("B", bytes(self._m))

    def memory_bytes(self) -> int:
        """Approximate memory used by the registers."""
        return self._m  # 1 byte per register

    def standard_error(self) -> float:
        """Theoretical standard error for this precision."""
        return standard_error(self._p)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HyperLogLog):
            return NotImplemented
        return (
            self._p == other._p
            and self.seed == other.seed
            and self._registers == other._registers
        )

    __hash__ = None  # mutable

    def __reduce__(self):
        from hll_lite.sketch.serialize import from_bytes, to_bytes

        return (from_bytes, (to_bytes(self),))

    def __repr__(self) -> str:
        return (
            f"HyperLogLog(precision={self._p}, "
            f"zero_registers={self._registers.count(0)})"
        )
