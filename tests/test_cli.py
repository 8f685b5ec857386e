"""Tests for CLI helpers: _fmt_inline, _show_vars, _process_line, main()."""

import io

import pytest

from tube_core import EvalConfig, TubeRepl
from tube_core.model import Cell
from tube_core.repl import _fmt_inline, _process_line, _show_vars, main
from tube_core.values import VNull, VNumber, VString


@pytest.fixture
def repl():
    return TubeRepl(EvalConfig(stdout=io.StringIO()))


# ---------------------------------------------------------------------------
# _fmt_inline
# ---------------------------------------------------------------------------

def test_fmt_inline_scalars():
    assert _fmt_inline(Cell(VString("hello"))) == "'hello'"
    assert _fmt_inline(Cell(VNumber(42.0))) == "42"
    assert _fmt_inline(Cell(VNull)) == "null"
    assert _fmt_inline(None) == "undefined"

def test_fmt_inline_composites(repl):
    repl.eval("var o = {a: 1, b: [1, 'x']};")
    assert _fmt_inline(repl.doc.lookup("o")) == "{a: 1, b: [1, 'x']}"

def test_fmt_inline_circular(repl):
    repl.eval("var o = {}; o.me = o;")
    assert _fmt_inline(repl.doc.lookup("o")) == "{me: [Circular]}"


# ---------------------------------------------------------------------------
# _show_vars
# ---------------------------------------------------------------------------

def test_show_vars_empty(repl):
    buf = io.StringIO()
    _show_vars(repl, buf)
    assert "no variables" in buf.getvalue()

def test_show_vars_with_entries(repl):
    repl.eval("var joe = 'Joe';")
    buf = io.StringIO()
    _show_vars(repl, buf)
    assert "joe : string 'Joe'" in buf.getvalue()


# ---------------------------------------------------------------------------
# _process_line
# ---------------------------------------------------------------------------

def test_process_line_quit(repl):
    assert _process_line(repl, ":q", io.StringIO()) is False
    assert _process_line(repl, ":quit", io.StringIO()) is False

def test_process_line_blank(repl):
    assert _process_line(repl, "   ", io.StringIO()) is True

def test_process_line_statement(repl):
    _process_line(repl, "var x = 2;", io.StringIO())
    assert repl.doc.lookup("x").number == 2

def test_process_line_expression(repl):
    buf = io.StringIO()
    _process_line(repl, "var x = 2;", buf)
    _process_line(repl, "? x * 21", buf)
    assert buf.getvalue() == "42\n"
    assert repl.doc.environment.live_temporaries == 0

def test_process_line_reset(repl):
    _process_line(repl, "var x = 2;", io.StringIO())
    _process_line(repl, ":reset", io.StringIO())
    assert repl.doc.lookup("x") is None

def test_process_line_vars(repl):
    buf = io.StringIO()
    _process_line(repl, "var x = 2;", buf)
    _process_line(repl, ":vars", buf)
    assert "x : number 2" in buf.getvalue()

def test_process_line_error_is_reported(repl, capsys):
    assert _process_line(repl, "var = ;", io.StringIO()) is True
    assert "error[E100]" in capsys.readouterr().err

def test_process_line_runtime_diagnostic(repl, capsys):
    _process_line(repl, "print(nope);", io.StringIO())
    assert "undeclared variable 'nope'" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------

def test_main_runs_file(tmp_path, capsys):
    src = tmp_path / "prog.tube"
    src.write_text("var a = [1, 2];\nprint(a.join('+'));\n", encoding="utf-8")
    assert main([str(src)]) == 0
    assert capsys.readouterr().out == "1+2\n"

def test_main_build_error_exits_1(tmp_path, capsys):
    src = tmp_path / "bad.tube"
    src.write_text("var x = 1;\nvar y = {} - 1;\n", encoding="utf-8")
    assert main([str(src)]) == 1
    assert "line 2: error[E200]" in capsys.readouterr().err

def test_main_strict_runtime_error_exits_1(tmp_path, capsys):
    src = tmp_path / "strict.tube"
    src.write_text("print(nope);\n", encoding="utf-8")
    assert main(["--strict", str(src)]) == 1
    assert "undeclared variable" in capsys.readouterr().err

def test_main_reports_diagnostics(tmp_path, capsys):
    src = tmp_path / "warn.tube"
    src.write_text("print(nope);\n", encoding="utf-8")
    assert main([str(src)]) == 0
    captured = capsys.readouterr()
    assert captured.out == "undefined\n"
    assert "line 1: error[E400]" in captured.err

def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent.tube")]) == 1
    assert "Error reading" in capsys.readouterr().err
