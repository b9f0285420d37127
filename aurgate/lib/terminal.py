from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Protocol

from .command import run_cmd

logger = logging.getLogger(__name__)


class LineReader(Protocol):
    """Blocking read of one lower-cased line of operator input."""

    def read_line(self) -> str:
        ...


class StdinLineReader:
    def __init__(self, stream=None) -> None:
        self._stream = stream

    def read_line(self) -> str:
        stream = self._stream or sys.stdin
        line = stream.readline()
        if line == "":
            # Closed stdin can never approve anything.
            raise EOFError("operator input closed")
        return line.strip().lower()


class ScriptedReader:
    """Feeds a fixed sequence of answers; EOFError when exhausted."""

    def __init__(self, answers: Iterable[str]) -> None:
        self._answers: List[str] = [a.strip().lower() for a in answers]
        self.consumed = 0

    def read_line(self) -> str:
        if self.consumed >= len(self._answers):
            raise EOFError("scripted answers exhausted")
        answer = self._answers[self.consumed]
        self.consumed += 1
        return answer


def run_shell(directory: Path, shell: str = "bash") -> int:
    """Spawn an interactive shell rooted at directory; returns its status."""

    logger.info("Spawning %s in %s for inspection", shell, directory)
    r = run_cmd([shell], cwd=str(directory), check=False, capture=False)
    return r.returncode
