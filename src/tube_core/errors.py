"""Exceptions and diagnostics for Tube Core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single reported problem, optionally tied to a source line."""

    message: str
    severity: Severity = Severity.ERROR
    line: int | None = None
    code: str = "E000"

    def format(self) -> str:
        loc = f"line {self.line}: " if self.line is not None else ""
        return f"{loc}{self.severity.value}[{self.code}]: {self.message}"

    def __str__(self) -> str:
        return self.format()


class TubeError(Exception):
    """Base class for every error raised by Tube Core."""


class BuildError(TubeError):
    """An AST node could not be constructed (static arity/type check)."""

    code = "E200"

    def __init__(self, message: str, line: int | None = None) -> None:
        self.diagnostic = Diagnostic(message, Severity.ERROR, line, self.code)
        super().__init__(message)

    @property
    def line(self) -> int | None:
        return self.diagnostic.line

    def __str__(self) -> str:
        return self.diagnostic.format()


class ParseError(BuildError):
    """The source text does not match the Tube grammar."""

    code = "E100"


class EvaluationError(TubeError):
    """A runtime lookup error raised in strict mode."""

    def __init__(self, diagnostic: Diagnostic) -> None:
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    def __str__(self) -> str:
        return self.diagnostic.format()


class ContractError(TubeError):
    """Internal misuse of a cell or the environment."""
