from __future__ import annotations

import logging
from pathlib import Path

import pytest

pytest.importorskip("llvmlite")

from walter.walterc import main


def _write(tmp_path: Path, source: str) -> Path:
    path = tmp_path / "prog.rl"
    path.write_text(source)
    return path


def test_compiles_to_object_next_to_source(tmp_path: Path) -> None:
    src = _write(tmp_path, "var x = 2\nprint_int(x)\n")
    assert main([str(src)]) == 0
    assert (tmp_path / "prog.o").stat().st_size > 0


def test_assembly_and_explicit_output(tmp_path: Path) -> None:
    src = _write(tmp_path, 'println("hi")\n')
    out = tmp_path / "out.s"
    assert main([str(src), "-o", str(out), "--assembly", "--release"]) == 0
    assert "main" in out.read_text()


def test_show_mir_and_ir(tmp_path: Path, capsys) -> None:
    src = _write(tmp_path, "var x = 2\n")
    assert main([str(src), "--show-mir", "--show-ir"]) == 0
    out = capsys.readouterr().out
    assert "fn main() -> Int32" in out
    assert "define i32" in out


def test_compile_error_is_reported_with_location(tmp_path: Path, caplog) -> None:
    src = _write(tmp_path, "var a = 1\nbreak\n")
    caplog.set_level(logging.ERROR)
    assert main([str(src)]) == 1
    assert f"{src}:2:1: compile error: break outside loop" in caplog.text
    assert not (tmp_path / "prog.o").exists()


def test_syntax_error(tmp_path: Path, caplog) -> None:
    src = _write(tmp_path, "var = 1\n")
    caplog.set_level(logging.ERROR)
    assert main([str(src)]) == 1
    assert "syntax error" in caplog.text


def test_missing_source(tmp_path: Path, caplog) -> None:
    caplog.set_level(logging.ERROR)
    assert main([str(tmp_path / "absent.rl")]) == 1
