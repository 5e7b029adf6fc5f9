"""Tests for the hll-lite command line."""
from __future__ import annotations

import io

import pytest

from hll_lite.cli import main
from hll_lite.sketch.serialize import loads
from hll_lite.sketch.tables import load_tables

from tests.cli.conftest import SEED, write_lines


def _count(tmp_path, name, lines, seed=SEED):
    src = write_lines(tmp_path / f"{name}.txt", lines)
    out = tmp_path / f"{name}.json"
    main(["count", str(src), "--seed", seed, "--save", str(out)])
    return out


class TestCount:
    def test_counts_distinct_lines(self, tmp_path, capsys):
        src = write_lines(tmp_path / "keys.txt", ["test1", "test2", "test3", "test2"])
        main(["count", str(src), "--seed", SEED])
        assert capsys.readouterr().out.strip() == "3"

    def test_reads_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("a\nb\na\n"))
        main(["count"])
        assert capsys.readouterr().out.strip() == "2"

    def test_multiple_files(self, tmp_path, capsys):
        a = write_lines(tmp_path / "a.txt", ["x", "y"])
        b = write_lines(tmp_path / "b.txt", ["y", "z"])
        main(["count", str(a), str(b)])
        assert capsys.readouterr().out.strip() == "3"

    def test_save(self, tmp_path, capsys):
        out = _count(tmp_path, "keys", ["test1", "test2"])
        hll = loads(out.read_text())
        assert hll.precision == 14  # default error rate 0.01
        assert hll.seed.to_int() == int(SEED)

    def test_bad_error_rate(self, tmp_path, capsys):
        src = write_lines(tmp_path / "keys.txt", ["a"])
        with pytest.raises(SystemExit) as exc:
            main(["count", str(src), "--error-rate", "1.5"])
        assert exc.value.code == 2
        assert "error_rate" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["count", str(tmp_path / "nope.txt")])
        assert exc.value.code == 2


class TestMerge:
    def test_union_estimate(self, tmp_path, capsys):
        a = _count(tmp_path, "a", ["test1", "test2", "test3", "test2"])
        b = _count(tmp_path, "b", ["test3", "test4", "test4", "test1"])
        capsys.readouterr()
        merged = tmp_path / "merged.json"
        main(["merge", str(a), str(b), "--output", str(merged)])
        assert capsys.readouterr().out.strip() == "4"
        assert round(loads(merged.read_text()).estimate()) == 4

    def test_different_seeds(self, tmp_path, capsys):
        a = _count(tmp_path, "a", ["test1"], seed="1")
        b = _count(tmp_path, "b", ["test2"], seed="2")
        capsys.readouterr()
        with pytest.raises(SystemExit) as exc:
            main(["merge", str(a), str(b)])
        assert exc.value.code == 2
        assert "incompatible" in capsys.readouterr().err


class TestInspect:
    def test_describes_sketch(self, tmp_path, capsys):
        path = _count(tmp_path, "keys", ["test1", "test2", "test3"])
        capsys.readouterr()
        main(["inspect", str(path)])
        out = capsys.readouterr().out
        assert "precision:      14" in out
        assert "registers:      16384" in out
        assert "zero registers: 16381" in out
        assert "linear_counting" in out

    def test_rejects_garbage(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text('{"format": "other"}')
        with pytest.raises(SystemExit) as exc:
            main(["inspect", str(path)])
        assert exc.value.code == 2

    def test_rejects_json_array(self, tmp_path, capsys):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(SystemExit) as exc:
            main(["inspect", str(path)])
        assert exc.value.code == 2
        assert "hll-lite:" in capsys.readouterr().err


class TestTables:
    def test_exports_json(self, tmp_path, capsys):
        out = tmp_path / "tables.json"
        main(["tables", "--precision", "4", "5", "--runs", "2", "--output", str(out)])
        assert "Wrote 2 table(s)" in capsys.readouterr().out
        tables = load_tables(out)
        assert [t.precision for t in tables] == [4, 5]


class TestNoCommand:
    def test_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "hll-lite" in capsys.readouterr().out
