"""Document: the final output of Tube evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field

from .environment import Environment
from .errors import Diagnostic
from .model import Cell
from .nodes import Node


@dataclass
class Document:
    """Holds the evaluated state of a Tube program: its global scope and
    every runtime diagnostic reported while running it."""

    environment: Environment = field(default_factory=Environment)

    def __post_init__(self) -> None:
        # Global scope; stays open so merge() can keep adding to it.
        if self.environment.depth < 0:
            self.environment.enter_scope()
        self._last_diagnostics: list[Diagnostic] = []

    # -- Convenience accessors ------------------------------------------

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self.environment.diagnostics

    @property
    def last_diagnostics(self) -> list[Diagnostic]:
        """Diagnostics produced by the most recent merge()."""
        return self._last_diagnostics

    @property
    def variables(self) -> dict[str, Cell]:
        """Visible names mapped to their (resolved) cells."""
        env = self.environment
        return {name: env.lookup(name).resolve() for name in env.active_names()}

    def lookup(self, name: str) -> Cell | None:
        cell = self.environment.lookup(name)
        return cell.resolve() if cell is not None else None

    # -- Incremental evaluation -----------------------------------------

    def merge(self, source: str | Node) -> list[Diagnostic]:
        """Evaluate more source (text or a parsed program) in the same
        global scope.  Used by TubeRepl."""
        from .evaluator import _evaluate_into
        from .reader import parse

        program = parse(source) if isinstance(source, str) else source
        self._last_diagnostics = _evaluate_into(program, self.environment)
        return self._last_diagnostics

    def close(self) -> None:
        """Exit the global scope, moving every global cell to the archive."""
        env = self.environment
        while env.depth >= 0:
            env.exit_scope()
