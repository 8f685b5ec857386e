"""TubeRepl: incremental REPL for interactive use.

Also provides the ``tube`` CLI entry point via ``main()``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import IO

from .coerce import format_number
from .config import EvalConfig
from .document import Document
from .environment import Environment
from .errors import BuildError, Diagnostic, EvaluationError
from .evaluator import run_source
from .model import Cell, Type
from .nodes import release_if_temp
from .reader import parse


# ---------------------------------------------------------------------------
# TubeRepl class (programmatic use)
# ---------------------------------------------------------------------------

class TubeRepl:
    """Stateful REPL that keeps its global scope across calls.

    Usage::

        repl = TubeRepl()
        repl.eval("var o = {name: 'Joe'};")
        repl.value("o.name")       # → Cell holding VString("Joe")

        repl.doc.variables         # all visible variables
        repl.reset()               # clear state
    """

    def __init__(self, config: EvalConfig | None = None) -> None:
        self.config = config or EvalConfig()
        self.doc = Document(environment=Environment(self.config))

    def eval(self, text: str) -> list[Diagnostic]:
        """Run *text* in the accumulated global scope.

        Returns the runtime diagnostics it produced.
        """
        return self.doc.merge(text)

    def value(self, expr: str) -> Cell | None:
        """Evaluate a single expression and return its result cell."""
        program = parse(expr.rstrip().rstrip(";") + ";")
        if len(program.statements) != 1:
            raise BuildError("expected a single expression")
        return program.statements[0].evaluate(self.doc.environment)

    def reset(self) -> None:
        """Clear all accumulated state."""
        self.doc = Document(environment=Environment(self.config))


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def _fmt_inline(cell: Cell | None, _seen: frozenset = frozenset()) -> str:
    """Format a value for compact one-line display."""
    if cell is None:
        return "undefined"
    cell = cell.resolve()
    if id(cell) in _seen:
        return "[Circular]"
    tag = cell.type
    if tag == Type.STRING:
        return repr(cell.string)
    if tag == Type.NUMBER:
        return format_number(cell.number)
    if tag == Type.BOOL:
        return "true" if cell.boolean else "false"
    if tag == Type.NULL:
        return "null"
    seen = _seen | {id(cell)}
    if tag == Type.OBJECT:
        body = ", ".join(f"{k}: {_fmt_inline(v, seen)}" for k, v in cell.props.items())
        return "{" + body + "}"
    if tag == Type.ARRAY:
        body = ", ".join(_fmt_inline(v, seen) for _, v in cell.value.ordered())
        return "[" + body + "]"
    return "void"


def _show_vars(repl: TubeRepl, dest: IO[str]) -> None:
    """Print all visible variables."""
    entries = repl.doc.variables
    if not entries:
        print("  (no variables defined)", file=dest)
        return
    width = max(len(k) for k in entries)
    for name, cell in entries.items():
        print(f"  {name:<{width}} : {cell.type.label} {_fmt_inline(cell)}", file=dest)


def _show_diagnostics(diagnostics: list[Diagnostic]) -> None:
    for diagnostic in diagnostics:
        print(diagnostic.format(), file=sys.stderr)


def _eval_expr(repl: TubeRepl, expr: str, dest: IO[str]) -> None:
    """Evaluate *expr* and print its value to *dest*."""
    env = repl.doc.environment
    before = len(env.diagnostics)
    cell = repl.value(expr)
    print(_fmt_inline(cell), file=dest)
    release_if_temp(env, cell)
    _show_diagnostics(env.diagnostics[before:])


def _process_line(repl: TubeRepl, line: str, dest: IO[str]) -> bool:
    """Process one input line.  Returns False when the session should end."""
    line = line.strip()
    if not line:
        return True

    # ── Exit ──────────────────────────────────────────────────────────────
    if line in (":q", ":quit"):
        return False

    # ── Control commands ──────────────────────────────────────────────────
    if line == ":vars":
        _show_vars(repl, dest)
        return True

    if line == ":reset":
        repl.reset()
        return True

    try:
        # ── ? expression ──────────────────────────────────────────────────
        if line.startswith("? "):
            _eval_expr(repl, line[2:].strip(), dest)
            return True

        # ── Regular Tube input ────────────────────────────────────────────
        _show_diagnostics(repl.eval(line))
    except (BuildError, EvaluationError) as exc:
        print(str(exc), file=sys.stderr)
    return True


def _shell(repl: TubeRepl) -> None:
    dest: IO[str] = repl.config.output
    print("Tube REPL  (:q to quit  |  :vars  :reset  |  ? <expr>)", file=dest)
    while True:
        try:
            line = input("tube> ")
        except EOFError:
            print(file=dest)
            break
        except KeyboardInterrupt:
            print(file=dest)
            continue
        if not _process_line(repl, line, dest):
            break


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tube",
        description="Run a Tube program, or start an interactive shell.",
    )
    parser.add_argument("file", nargs="?", help="source file to run (omit for a shell)")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="log runtime diagnostics (-v) and scope/parse events (-vv)",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="stop at the first runtime error instead of reporting it",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Tube command line (``tube`` / ``python -m tube_core``)."""
    args = _build_arg_parser().parse_args(argv)

    config = EvalConfig(strict=args.strict)
    if args.verbose >= 2:
        config.log_level = logging.DEBUG
    elif args.verbose == 1:
        config.log_level = logging.INFO
    # Diagnostics are printed directly; the logger only echoes them with -v.
    level = config.log_level if args.verbose else logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.file is None:
        _shell(TubeRepl(config))
        return 0

    try:
        with open(args.file, encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        print(f"Error reading '{args.file}': {exc}", file=sys.stderr)
        return 1

    try:
        doc = run_source(text, config)
    except (BuildError, EvaluationError) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    doc.close()
    _show_diagnostics(doc.diagnostics)
    return 0


if __name__ == "__main__":
    sys.exit(main())
