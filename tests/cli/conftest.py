"""Shared helpers for CLI tests."""
from __future__ import annotations

from pathlib import Path

SEED = "4242"


def write_lines(path: Path, lines: list[str]) -> Path:
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path
