"""Empirical correction data for the mid-range HyperLogLog estimate.

HLL++ (Heule, Nunkesser, Hall, 2013) observed that the raw harmonic-mean
estimate is biased for cardinalities below about 5m, and measured the
bias by simulation: for many cardinalities n, average the raw estimate
over many random streams and record (mean raw estimate, mean raw
estimate - n). At query time the bias is looked up by nearest-neighbour
averaging against those reference points (see bias.py).

Each precision gets one CorrectionTable:

    raw_estimates  reference points in ascending order
    biases         parallel array, bias at each reference point
    threshold      linear-counting cut-off for this precision

The published HLL++ arrays ship with datasketch and are frozen into
tuples at import time. A few published rows are only almost sorted;
they are used exactly as given. Per precision, first match wins:

    1. a table installed in-process with install_table()
    2. the JSON file named by $HLL_LITE_TABLES (loaded once)
    3. the published table

simulate_table() replays the HLL++ measurement with a fixed numpy seed.
It is never used for estimation; `hll-lite tables` exports its output
for experiments with other precisions or hash functions.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

import numpy as np
from datasketch.hyperloglog_const import _bias, _raw_estimate, _thresholds

from hll_lite.sketch.params import (
    MIN_PRECISION,
    alpha_for_precision,
    check_precision,
)

log = logging.getLogger(__name__)

TABLES_ENV_VAR = "HLL_LITE_TABLES"
TABLE_FORMAT_VERSION = 1
NEIGHBORS = 6
DEFAULT_SIMULATION_SEED = 20130318
DEFAULT_CHECKPOINTS = 200

# Linear-counting thresholds, indexed by p - 4.
THRESHOLDS: tuple[float, ...] = tuple(float(t) for t in _thresholds)


@dataclass(frozen=True, slots=True)
class CorrectionTable:
    precision: int
    raw_estimates: tuple[float, ...]
    biases: tuple[float, ...]
    threshold: float

    def __post_init__(self) -> None:
        check_precision(self.precision)
        if len(self.raw_estimates) != len(self.biases):
            raise ValueError(
                f"raw_estimates and biases differ in length: "
                f"{len(self.raw_estimates)} vs {len(self.biases)}"
            )
        if len(self.raw_estimates) < NEIGHBORS:
            raise ValueError(
                f"A correction table needs at least {NEIGHBORS} points, "
                f"got {len(self.raw_estimates)}"
            )

    def to_dict(self) -> dict:
        return {
            "precision": self.precision,
            "threshold": self.threshold,
            "raw_estimates": list(self.raw_estimates),
            "biases": list(self.biases),
        }

    @classmethod
    def from_dict(cls, obj: dict) -> CorrectionTable:
        return cls(
            precision=int(obj["precision"]),
            raw_estimates=tuple(float(x) for x in obj["raw_estimates"]),
            biases=tuple(float(x) for x in obj["biases"]),
            threshold=float(obj["threshold"]),
        )


def _published() -> dict[int, CorrectionTable]:
    tables = {}
    for i, (raw, bias) in enumerate(zip(_raw_estimate, _bias)):
        tables[MIN_PRECISION + i] = CorrectionTable(
            precision=MIN_PRECISION + i,
            raw_estimates=tuple(float(x) for x in raw),
            biases=tuple(float(x) for x in bias),
            threshold=THRESHOLDS[i],
        )
    return tables


PUBLISHED_TABLES: Mapping[int, CorrectionTable] = MappingProxyType(_published())

_lock = threading.Lock()
_tables: dict[int, CorrectionTable] = {}
_file_loaded = False


def _bit_length(w: np.ndarray) -> np.ndarray:
    """Vectorized int.bit_length() for uint64 arrays.

    frexp returns the binary exponent, which is the bit length for
    values that fit a float64 mantissa, so split into 32-bit halves.
    """
    _, high = np.frexp((w >> np.uint64(32)).astype(np.float64))
    _, low = np.frexp((w & np.uint64(0xFFFFFFFF)).astype(np.float64))
    return np.where(high > 0, high + 32, low)


def simulate_table(
    precision: int,
    runs: int | None = None,
    checkpoints: int = DEFAULT_CHECKPOINTS,
    seed: int = DEFAULT_SIMULATION_SEED,
) -> CorrectionTable:
    """Measure raw-estimate bias for one precision.

    Each run feeds 5m uniformly random 64-bit hashes through a fresh
    register array and records the raw estimate at every checkpoint
    cardinality. Results are averaged over runs. Deterministic for a
    given (precision, runs, checkpoints, seed).
    """
    check_precision(precision)
    m = 1 << precision
    if runs is None:
        runs = max(8, 4096 >> precision)
    if runs < 1 or checkpoints < NEIGHBORS:
        raise ValueError(
            f"Need runs >= 1 and checkpoints >= {NEIGHBORS}, got {runs}, {checkpoints}"
        )
    alpha = alpha_for_precision(precision)
    max_n = 5 * m
    points = np.unique(np.linspace(0, max_n, num=checkpoints).astype(np.int64))
    rng = np.random.default_rng([seed, precision])
    totals = np.zeros(len(points), dtype=np.float64)
    index_mask = np.uint64(m - 1)
    shift = np.uint64(precision)
    max_width = 64 - precision

    for _ in range(runs):
        hashes = rng.integers(
            np.iinfo(np.uint64).max, size=max_n, dtype=np.uint64, endpoint=True
        )
        idx = (hashes & index_mask).astype(np.intp)
        ranks = (max_width - _bit_length(hashes >> shift) + 1).astype(np.uint8)
        registers = np.zeros(m, dtype=np.uint8)
        start = 0
        for k, n in enumerate(points):
            np.maximum.at(registers, idx[start:n], ranks[start:n])
            start = n
            indicator = np.exp2(-registers.astype(np.float64)).sum()
            totals[k] += alpha * m * m / indicator

    means = totals / runs
    biases = means - points
    order = np.argsort(means, kind="stable")
    return CorrectionTable(
        precision=precision,
        raw_estimates=tuple(float(x) for x in means[order]),
        biases=tuple(float(x) for x in biases[order]),
        threshold=THRESHOLDS[precision - MIN_PRECISION],
    )


def load_tables(path: str | os.PathLike) -> list[CorrectionTable]:
    """Read tables from a JSON file written by dump_tables()."""
    obj = json.loads(Path(path).read_text(encoding="utf-8"))
    if obj.get("version") != TABLE_FORMAT_VERSION:
        raise ValueError(
            f"Unsupported table file version {obj.get('version')!r} in {path}"
        )
    return [CorrectionTable.from_dict(entry) for entry in obj["tables"]]


def dump_tables(tables: Iterable[CorrectionTable], path: str | os.PathLike) -> None:
    payload = {
        "version": TABLE_FORMAT_VERSION,
        "tables": [t.to_dict() for t in sorted(tables, key=lambda t: t.precision)],
    }
    Path(path).write_text(json.dumps(payload), encoding="utf-8")


def install_table(table: CorrectionTable) -> None:
    """Pin the table used for table.precision in this process."""
    with _lock:
        _tables[table.precision] = table
    log.debug("Installed correction table for p=%d (%d points)",
              table.precision, len(table.raw_estimates))


def _load_env_file() -> None:
    # Caller holds _lock.
    global _file_loaded
    if _file_loaded:
        return
    path = os.environ.get(TABLES_ENV_VAR)
    if path:
        for table in load_tables(path):
            _tables.setdefault(table.precision, table)
        log.debug("Loaded correction tables from %s", path)
    _file_loaded = True


def threshold_for(precision: int) -> float:
    """Linear-counting threshold for precision."""
    check_precision(precision)
    with _lock:
        _load_env_file()
        table = _tables.get(precision)
    if table is not None:
        return table.threshold
    return THRESHOLDS[precision - MIN_PRECISION]


def get_table(precision: int) -> CorrectionTable:
    check_precision(precision)
    with _lock:
        _load_env_file()
        table = _tables.get(precision)
    if table is not None:
        return table
    try:
        return PUBLISHED_TABLES[precision]
    except KeyError:
        raise ValueError(
            f"No published correction table for p={precision}; "
            f"install one or point ${TABLES_ENV_VAR} at a table file"
        ) from None


def reset_tables() -> None:
    """Drop every installed table and forget the env file."""
    global _file_loaded
    with _lock:
        _tables.clear()
        _file_loaded = False
