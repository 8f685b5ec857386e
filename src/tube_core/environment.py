"""Scope management: the stack of frames that owns every named cell."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from .config import EvalConfig
from .errors import ContractError, Diagnostic, EvaluationError, Severity
from .model import Cell, Type, default_value
from .values import VVoid

logger = logging.getLogger(__name__)


class Environment:
    """Scope manager for one evaluation run.

    Holds the frame stack (cells declared at each depth), the index of the
    currently visible binding for each name, the archive of cells that have
    left scope, and the set of live temporaries.  Retired cells are kept in
    the archive for the rest of the run because references may still point
    at them.
    """

    def __init__(self, config: EvalConfig | None = None) -> None:
        self.config = config or EvalConfig()
        self.diagnostics: list[Diagnostic] = []
        self.archive: list[Cell] = []
        self._frames: list[list[Cell]] = []
        self._active: dict[str, Cell] = {}
        self._temporaries: set[Cell] = set()

    # -- Scopes ---------------------------------------------------------

    @property
    def depth(self) -> int:
        """Index of the innermost frame, -1 before the global scope exists."""
        return len(self._frames) - 1

    def enter_scope(self) -> None:
        self._frames.append([])
        logger.debug("enter scope %d", self.depth)

    def exit_scope(self) -> None:
        if not self._frames:
            raise ContractError("exit_scope() without a matching enter_scope()")
        depth = self.depth
        frame = self._frames.pop()
        # Newest first, so a name declared twice in one frame unwinds correctly.
        for cell in reversed(frame):
            if cell.shadow is not None:
                self._active[cell.name] = cell.shadow
            else:
                self._active.pop(cell.name, None)
        self.archive.extend(frame)
        logger.debug("exit scope %d (%d cells archived)", depth, len(frame))

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Run a block in a new frame; the frame is popped even on error."""
        self.enter_scope()
        try:
            yield
        finally:
            self.exit_scope()

    # -- Named cells ----------------------------------------------------

    def declare(self, name: str, tag: Type = Type.VOID) -> Cell:
        if not self._frames:
            raise ContractError(f"cannot declare {name!r}: no scope has been entered")
        cell = Cell(default_value(tag), name=name, scope=self.depth, temp=False)
        cell.shadow = self._active.get(name)
        self._active[name] = cell
        self._frames[-1].append(cell)
        return cell

    def lookup(self, name: str) -> Cell | None:
        return self._active.get(name)

    def active_names(self) -> list[str]:
        return list(self._active)

    def scope_cells(self, depth: int) -> list[Cell]:
        if not 0 <= depth < len(self._frames):
            raise ContractError(
                f"requested cells of scope #{depth}, but only {len(self._frames)} exist"
            )
        return list(self._frames[depth])

    # -- Temporaries and members -----------------------------------------

    def new_temporary(self, tag: Type = Type.VOID) -> Cell:
        cell = Cell(default_value(tag))
        self._temporaries.add(cell)
        return cell

    def new_member(self, name: str, tag: Type = Type.VOID) -> Cell:
        """A cell owned by an object property or array slot."""
        return Cell(default_value(tag), name=name, temp=False)

    @property
    def live_temporaries(self) -> int:
        return len(self._temporaries)

    def release(self, cell: Cell) -> None:
        if not cell.temp:
            raise ContractError(f"cannot release non-temporary cell {cell.name!r}")
        self._temporaries.discard(cell)
        cell.released = True
        cell.value = VVoid

    def retain(self, cell: Cell) -> None:
        """Keep a temporary alive past its creator (it is now referenced)."""
        if cell.temp:
            self._temporaries.discard(cell)
            cell.temp = False

    def discard(self, cell: Cell) -> None:
        """Destroy whatever cell ``delete`` was applied to."""
        if cell.temp:
            self.release(cell)
            return
        cell.released = True
        cell.value = VVoid

    # -- Runtime error channel -----------------------------------------

    def report(self, message: str, line: int | None = None, code: str = "E400") -> None:
        diagnostic = Diagnostic(message, Severity.ERROR, line, code)
        if self.config.strict:
            raise EvaluationError(diagnostic)
        self.diagnostics.append(diagnostic)
        logger.warning("%s", diagnostic.format())
