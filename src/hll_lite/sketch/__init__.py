"""HyperLogLog distinct-count estimation.

Public API:
    HyperLogLog: the counter (insert / estimate / merge / clear)
    IncompatibleSketchError: merge across different seeds
    SeedPair: 128-bit hash key, the merge compatibility token
    Regime: which estimation formula produced an estimate
    CorrectionTable: empirical bias data for one precision
    dumps / loads, to_bytes / from_bytes: persisted forms
"""

from hll_lite.sketch.estimator import Regime
from hll_lite.sketch.hashing import SeedPair
from hll_lite.sketch.hyperloglog import HyperLogLog, IncompatibleSketchError
from hll_lite.sketch.serialize import dumps, from_bytes, loads, to_bytes
from hll_lite.sketch.tables import CorrectionTable

__all__ = [
    "CorrectionTable",
    "HyperLogLog",
    "IncompatibleSketchError",
    "Regime",
    "SeedPair",
    "dumps",
    "from_bytes",
    "loads",
    "to_bytes",
]
