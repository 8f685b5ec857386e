"""Run configuration for Tube Core."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import IO


@dataclass
class EvalConfig:
    """Settings for one evaluation run.

    ``stdout`` is where ``print`` writes; ``None`` means the current
    ``sys.stdout`` at the time of writing.  With ``strict`` set, runtime
    lookup errors raise :class:`~tube_core.errors.EvaluationError` instead
    of being recorded and skipped.
    """

    stdout: IO[str] | None = None
    strict: bool = False
    log_level: int = logging.WARNING

    @property
    def output(self) -> IO[str]:
        return self.stdout if self.stdout is not None else sys.stdout
