"""Operator prompts as an explicit finite-state machine.

Every interactive loop (archive audit, install confirmation, recipe review)
is a ``Menu``: it sits in ``AWAITING_INPUT``, maps one line of input to an
option, runs that option's action and either returns to ``AWAITING_INPUT``
or stops in a terminal state. Unknown input re-prompts. There is no
timeout.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from rich.console import Console

from .lib.terminal import LineReader

logger = logging.getLogger(__name__)


class MenuState(enum.Enum):
    AWAITING_INPUT = "awaiting_input"
    LISTING = "listing"
    INSPECTING = "inspecting"
    APPROVED = "approved"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (MenuState.APPROVED, MenuState.ABORTED)


@dataclass(frozen=True)
class MenuOption:
    key: str
    label: str
    state: MenuState
    action: Optional[Callable[[], None]] = None
    style: Optional[str] = None


class Menu:
    def __init__(
        self,
        options: Sequence[MenuOption],
        *,
        reader: LineReader,
        console: Console,
        before_prompt: Optional[Callable[[], None]] = None,
        suffix: str = "",
    ) -> None:
        keys = [o.key for o in options]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate menu keys: {keys}")
        self.options: List[MenuOption] = list(options)
        self.reader = reader
        self.console = console
        self.before_prompt = before_prompt
        self.suffix = suffix
        self.state = MenuState.AWAITING_INPUT
        self.history: List[MenuState] = []

    def _option(self, key: str) -> Optional[MenuOption]:
        for o in self.options:
            if o.key == key:
                return o
        return None

    def prompt(self) -> None:
        if self.before_prompt is not None:
            self.before_prompt()
        for o in self.options:
            self.console.print(f"[{o.key.upper()}]={o.label}, ", style=o.style, end="", markup=False)
        if self.suffix:
            self.console.print(self.suffix, end="", markup=False)

    def step(self, answer: str) -> MenuState:
        """Apply one line of input and return the new state."""

        option = self._option(answer)
        if option is None:
            logger.debug("Unrecognized menu input %r", answer)
            self.state = MenuState.AWAITING_INPUT
            return self.state
        self.state = option.state
        self.history.append(option.state)
        if option.action is not None:
            option.action()
        if not self.state.is_terminal:
            self.state = MenuState.AWAITING_INPUT
        return self.state

    def run(self) -> MenuState:
        while not self.state.is_terminal:
            self.prompt()
            answer = self.reader.read_line()
            self.console.print()
            self.step(answer)
        return self.state
