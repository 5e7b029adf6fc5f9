"""Keyed 64-bit hashing of arbitrary values.

Register placement has to be reproducible: two counters built from the
same seed must send the same element to the same register, in this
process and in any other. Python's built-in hash() is salted per process
for str and bytes, so it cannot be used. Instead every value is turned
into a canonical byte string and fed to keyed BLAKE2b with an 8-byte
digest. The 128-bit seed is the BLAKE2b key.

Canonical form: a one-byte type tag followed by a 4-byte big-endian
length prefix and the payload. Containers encode their item count and
then each item recursively. Tagging keeps "1", b"1", 1 and 1.0 apart,
and the length prefix makes the encoding injective across nested
values.
"""

from __future__ import annotations

import hashlib
import os
import struct
import uuid
from dataclasses import dataclass

_U64_MASK = (1 << 64) - 1


@dataclass(frozen=True, slots=True)
class SeedPair:
    """Two 64-bit keys. This is the compatibility token for merging."""
    key0: int
    key1: int

    def __post_init__(self) -> None:
        for name in ("key0", "key1"):
            value = getattr(self, name)
            if not (0 <= value <= _U64_MASK):
                raise ValueError(f"{name} must be an unsigned 64-bit integer, got {value}")

    @classmethod
    def from_int(cls, seed: int) -> SeedPair:
        """Split a 128-bit seed into (high 64 bits, low 64 bits)."""
        if not (0 <= seed < (1 << 128)):
            raise ValueError("seed must be an unsigned 128-bit integer")
        return cls(seed >> 64, seed & _U64_MASK)

    @classmethod
    def random(cls) -> SeedPair:
        """Draw a seed from the OS CSPRNG."""
        return cls.from_int(int.from_bytes(os.urandom(16), "big"))

    def to_int(self) -> int:
        return (self.key0 << 64) | self.key1

    def to_bytes(self) -> bytes:
        return struct.pack("!QQ", self.key0, self.key1)


def _lp(tag: bytes, data: bytes) -> bytes:
    return tag + struct.pack("!I", len(data)) + data


def encode_value(value: object) -> bytes:
    """Deterministic, type-tagged byte form of a value.

    Raises TypeError for types without a canonical form.
    """
    # bool before int: True is an int too
    if isinstance(value, bool):
        return _lp(b"?", b"\x01" if value else b"\x00")
    if isinstance(value, str):
        return _lp(b"s", value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _lp(b"b", bytes(value))
    if isinstance(value, int):
        length = (value.bit_length() + 8) // 8
        return _lp(b"i", value.to_bytes(length, "big", signed=True))
    if isinstance(value, float):
        return _lp(b"f", struct.pack("!d", value))
    if value is None:
        return _lp(b"n", b"")
    if isinstance(value, uuid.UUID):
        return _lp(b"u", value.bytes)
    if isinstance(value, tuple):
        parts = [encode_value(item) for item in value]
        return _lp(b"t", struct.pack("!I", len(parts)) + b"".join(parts))
    if isinstance(value, frozenset):
        # Iteration order of a set is not stable, the encoded items are.
        parts = sorted(encode_value(item) for item in value)
        return _lp(b"F", struct.pack("!I", len(parts)) + b"".join(parts))
    raise TypeError(f"Cannot hash value of type {type(value).__name__}")


class KeyedHasher:
    """Keyed BLAKE2b-64 bound to one seed.

    The keyed state is built once; every call works on a copy, so the
    template is never consumed.
    """

    __slots__ = ("_seed", "_template")

    def __init__(self, seed: SeedPair) -> None:
        self._seed = seed
        self._template = hashlib.blake2b(digest_size=8, key=seed.to_bytes())

    @property
    def seed(self) -> SeedPair:
        return self._seed

    def hash_bytes(self, data: bytes) -> int:
        h = self._template.copy()
        h.update(data)
        return int.from_bytes(h.digest(), "little")

    def hash_value(self, value: object) -> int:
        return self.hash_bytes(encode_value(value))
