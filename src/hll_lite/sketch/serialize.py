"""Persisted forms of a HyperLogLog counter.

Two encodings carry the same fields (precision, alpha, register count,
seed pair, registers). The keyed hasher is not stored; it is rebuilt
from the seed, so a decoded counter stays mergeable with the original.

JSON (for files and humans):
    {
        "format": "hll-lite",
        "version": 1,
        "precision": 12,
        "alpha": 0.7211...,
        "register_count": 4096,
        "seed": [key0, key1],
        "registers": "<base64, one byte per register>"
    }

Binary (compact, for the wire):
    4 bytes   magic b"HLL1"
    1 byte    version
    1 byte    precision
    8 bytes   alpha (big-endian float64)
    8 bytes   key0 (big-endian uint64)
    8 bytes   key1 (big-endian uint64)
    4 bytes   register count (big-endian uint32)
    N bytes   registers
"""

from __future__ import annotations

import array
import base64
import json
import struct

from hll_lite.sketch.hashing import SeedPair
from hll_lite.sketch.hyperloglog import HyperLogLog
from hll_lite.sketch.params import alpha_for_precision, check_precision

FORMAT_NAME = "hll-lite"
FORMAT_VERSION = 1
MAGIC = b"HLL1"
_HEADER = struct.Struct("!4sBBdQQI")


def _build(
    precision: int,
    alpha: float,
    register_count: int,
    seed: SeedPair,
    registers: bytes,
) -> HyperLogLog:
    """Validate decoded fields and assemble a counter."""
    check_precision(precision)
    if register_count != 1 << precision:
        raise ValueError(
            f"register_count {register_count} does not match precision {precision}"
        )
    if len(registers) != register_count:
        raise ValueError(
            f"Expected {register_count} registers, got {len(registers)}"
        )
    if alpha != alpha_for_precision(precision):
        raise ValueError(f"alpha {alpha!r} does not match precision {precision}")
    max_rank = 65 - precision
    if registers and max(registers) > max_rank:
        raise ValueError(f"Register value above the maximum rank {max_rank}")
    hll = HyperLogLog.from_precision(precision, seed)
    hll._registers = array.array("B", registers)
    return hll


def to_dict(hll: HyperLogLog) -> dict:
    return {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "precision": hll.precision,
        "alpha": hll.alpha,
        "register_count": hll.num_registers,
        "seed": [hll.seed.key0, hll.seed.key1],
        "registers": base64.b64encode(hll.registers).decode("ascii"),
    }


def _require_int(name: str, value: object) -> int:
    # JSON true/false decode to bool, which is an int subclass
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Malformed sketch: {name} must be an integer, got {value!r}")
    return value


def from_dict(obj: dict) -> HyperLogLog:
    if not isinstance(obj, dict):
        raise ValueError(
            f"Not a {FORMAT_NAME} sketch: expected an object, got {type(obj).__name__}"
        )
    if obj.get("format") != FORMAT_NAME:
        raise ValueError(f"Not a {FORMAT_NAME} sketch: format={obj.get('format')!r}")
    if obj.get("version") != FORMAT_VERSION:
        raise ValueError(f"Unsupported sketch version {obj.get('version')!r}")
    try:
        key0, key1 = obj["seed"]
        alpha = obj["alpha"]
        if not isinstance(alpha, (int, float)) or isinstance(alpha, bool):
            raise ValueError(f"Malformed sketch: alpha must be a number, got {alpha!r}")
        fields = dict(
            precision=_require_int("precision", obj["precision"]),
            alpha=float(alpha),
            register_count=_require_int("register_count", obj["register_count"]),
            seed=SeedPair(_require_int("seed", key0), _require_int("seed", key1)),
            registers=base64.b64decode(obj["registers"], validate=True),
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed sketch: {exc!r}") from exc
    return _build(**fields)


def dumps(hll: HyperLogLog) -> str:
    return json.dumps(to_dict(hll), separators=(",", ":"))


def loads(data: str | bytes) -> HyperLogLog:
    return from_dict(json.loads(data))


def to_bytes(hll: HyperLogLog) -> bytes:
    header = _HEADER.pack(
        MAGIC,
        FORMAT_VERSION,
        hll.precision,
        hll.alpha,
        hll.seed.key0,
        hll.seed.key1,
        hll.num_registers,
    )
    return header + hll.registers


def from_bytes(data: bytes) -> HyperLogLog:
    if len(data) < _HEADER.size:
        raise ValueError(
            f"Sketch payload too short: {len(data)} bytes, header needs {_HEADER.size}"
        )
    magic, version, precision, alpha, key0, key1, count = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise ValueError(f"Bad magic {magic!r}, expected {MAGIC!r}")
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported sketch version {version}")
    return _build(
        precision=precision,
        alpha=alpha,
        register_count=count,
        seed=SeedPair(key0, key1),
        registers=bytes(data[_HEADER.size:]),
    )
