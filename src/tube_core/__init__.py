"""Tube Core: tree-walking evaluator for the Tube scripting language."""

from .config import EvalConfig
from .document import Document
from .environment import Environment
from .errors import (
    BuildError,
    ContractError,
    Diagnostic,
    EvaluationError,
    ParseError,
    Severity,
    TubeError,
)
from .evaluator import evaluate, run_source
from .model import Cell, Type
from .reader import parse
from .repl import TubeRepl
from .values import (
    Value,
    VArray,
    VBool,
    VNull,
    VNumber,
    VObject,
    VReference,
    VString,
    VVoid,
)

__all__ = [
    "evaluate",
    "run_source",
    "parse",
    "Document",
    "Environment",
    "EvalConfig",
    "Cell",
    "Type",
    "Value",
    "VArray",
    "VBool",
    "VNull",
    "VNumber",
    "VObject",
    "VReference",
    "VString",
    "VVoid",
    "TubeError",
    "BuildError",
    "ParseError",
    "EvaluationError",
    "ContractError",
    "Diagnostic",
    "Severity",
    "TubeRepl",
]
