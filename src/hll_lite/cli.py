"""hll-lite CLI entry point.

Usage: hll-lite [-v] <command> ...

    count    estimate distinct lines in files or stdin
    merge    union of saved sketches
    inspect  show the state of a saved sketch
    tables   export simulated bias-correction tables (estimation uses the
             published HLL++ tables)
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterator, Sequence, TextIO

from hll_lite.sketch.hyperloglog import HyperLogLog, IncompatibleSketchError
from hll_lite.sketch.serialize import dumps, loads
from hll_lite.sketch.tables import dump_tables, simulate_table

log = logging.getLogger(__name__)

EXIT_USAGE = 2


def _add_count_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "count",
        help="Estimate the number of distinct lines.",
    )
    p.add_argument(
        "files", nargs="*", type=Path,
        help="Input files, one element per line (default: stdin)",
    )
    p.add_argument(
        "--error-rate", type=float, default=0.01,
        help="Target relative standard error (default: 0.01)",
    )
    p.add_argument(
        "--seed", type=int, default=None,
        help="128-bit hash seed; required to merge the saved sketch later "
             "with sketches from other runs (default: random)",
    )
    p.add_argument(
        "--save", type=Path, default=None,
        help="Write the sketch as JSON to this path.",
    )


def _add_merge_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "merge",
        help="Merge saved sketches and print the union estimate.",
    )
    p.add_argument("sketches", nargs="+", type=Path, help="JSON sketch files")
    p.add_argument(
        "--output", type=Path, default=None,
        help="Write the merged sketch as JSON to this path.",
    )


def _add_inspect_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("inspect", help="Describe a saved sketch.")
    p.add_argument("sketch", type=Path, help="JSON sketch file")


def _add_tables_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "tables",
        help="Simulate bias-correction tables and write them as JSON.",
    )
    p.add_argument(
        "--precision", type=int, nargs="+", required=True,
        help="Precisions to simulate (4..18)",
    )
    p.add_argument("--output", type=Path, required=True, help="Output JSON path")
    p.add_argument(
        "--runs", type=int, default=None,
        help="Simulated streams per precision (default: depends on precision)",
    )
    p.add_argument(
        "--seed", type=int, default=None,
        help="Simulation RNG seed (default: built-in seed)",
    )


def _iter_lines(files: Sequence[Path], stdin: TextIO) -> Iterator[str]:
    if not files:
        for line in stdin:
            yield line.rstrip("\n")
        return
    for path in files:
        with path.open(encoding="utf-8") as fh:
            for line in fh:
                yield line.rstrip("\n")


def _load_sketch(path: Path) -> HyperLogLog:
    return loads(path.read_text(encoding="utf-8"))


def _run_count(args: argparse.Namespace) -> None:
    hll = HyperLogLog(args.error_rate, seed=args.seed)
    hll.update(_iter_lines(args.files, sys.stdin))
    print(f"{hll.estimate():.0f}")
    if args.save is not None:
        args.save.write_text(dumps(hll), encoding="utf-8")
        log.debug("Saved sketch to %s", args.save)


def _run_merge(args: argparse.Namespace) -> None:
    first, *rest = args.sketches
    merged = _load_sketch(first)
    for path in rest:
        merged.merge(_load_sketch(path))
    print(f"{merged.estimate():.0f}")
    if args.output is not None:
        args.output.write_text(dumps(merged), encoding="utf-8")
        log.debug("Saved merged sketch to %s", args.output)


def _run_inspect(args: argparse.Namespace) -> None:
    hll = _load_sketch(args.sketch)
    print(f"precision:      {hll.precision}")
    print(f"registers:      {hll.num_registers}")
    print(f"zero registers: {hll.registers.count(0)}")
    print(f"std error:      {hll.standard_error():.4f}")
    print(f"regime:         {hll.regime().value}")
    print(f"estimate:       {hll.estimate():.2f}")


def _run_tables(args: argparse.Namespace) -> None:
    kwargs = {"runs": args.runs}
    if args.seed is not None:
        kwargs["seed"] = args.seed
    tables = [simulate_table(p, **kwargs) for p in args.precision]
    dump_tables(tables, args.output)
    print(f"Wrote {len(tables)} table(s) to {args.output}")


_COMMANDS = {
    "count": _run_count,
    "merge": _run_merge,
    "inspect": _run_inspect,
    "tables": _run_tables,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="hll-lite",
        description="Distinct counting with HyperLogLog -- fixed memory, bounded error.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging on stderr.",
    )
    subparsers = parser.add_subparsers(dest="command")

    _add_count_parser(subparsers)
    _add_merge_parser(subparsers)
    _add_inspect_parser(subparsers)
    _add_tables_parser(subparsers)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        _COMMANDS[args.command](args)
    except IncompatibleSketchError as exc:
        print(f"hll-lite: incompatible sketches: {exc}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    except (ValueError, OSError) as exc:
        print(f"hll-lite: {exc}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
