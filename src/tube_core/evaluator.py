"""Evaluator: runs a program Block against an Environment → Document."""

from __future__ import annotations

import logging

from .config import EvalConfig
from .document import Document
from .environment import Environment
from .errors import Diagnostic
from .nodes import Node, release_if_temp
from .reader import parse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def evaluate(program: Node, config: EvalConfig | None = None) -> Document:
    """Evaluate a program (from :func:`tube_core.reader.parse`) and return a Document.

    The global scope is left open on the returned document so further
    source can be merged into it.
    """
    doc = Document(environment=Environment(config))
    _evaluate_into(program, doc.environment)
    return doc


def run_source(text: str, config: EvalConfig | None = None) -> Document:
    """Parse and evaluate Tube source text."""
    return evaluate(parse(text), config)


# ---------------------------------------------------------------------------
# Incremental evaluation
# ---------------------------------------------------------------------------

def _evaluate_into(program: Node, env: Environment) -> list[Diagnostic]:
    """Run ``program`` in the environment's current scope.

    Returns the diagnostics reported during this run only.
    """
    if env.depth < 0:
        env.enter_scope()
    before = len(env.diagnostics)
    release_if_temp(env, program.evaluate(env))
    new = env.diagnostics[before:]
    logger.debug(
        "evaluated program: %d diagnostics, %d live temporaries",
        len(new), env.live_temporaries,
    )
    return new
