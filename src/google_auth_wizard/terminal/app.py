"""Interactive key loop for the scope selector."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Sequence

import click
from rich.console import Console

from google_auth_wizard.config import DEFAULT_TERMINAL_HEIGHT
from google_auth_wizard.exceptions import SelectorError
from google_auth_wizard.terminal.items import SelectionItem
from google_auth_wizard.terminal.render import page_size_for_height, render_selector
from google_auth_wizard.terminal.selector import ScopeSelector, SelectionResult

logger = logging.getLogger(__name__)

# Raw input (as returned by click.getchar) to key names.
KEY_NAMES = {
    "\t": "tab",
    "\r": "enter",
    "\n": "enter",
    "\x1b": "esc",
    "\x03": "ctrl+c",
    "\x0c": "ctrl+l",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[5~": "pgup",
    "\x1b[6~": "pgdown",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    # Windows console scan codes
    "\xe0H": "up",
    "\xe0P": "down",
    "\xe0M": "right",
    "\xe0K": "left",
    "\xe0I": "pgup",
    "\xe0Q": "pgdown",
    "\xe0G": "home",
    "\xe0O": "end",
}


def decode_key(raw: str) -> str:
    return KEY_NAMES.get(raw, raw)


def read_key() -> str:
    """Block for one key press and return its name."""
    try:
        return decode_key(click.getchar())
    except (KeyboardInterrupt, EOFError):
        return "ctrl+c"


class Terminal:
    """Runs a ``ScopeSelector`` full screen until the user confirms or quits."""

    def __init__(
        self,
        height: int = DEFAULT_TERMINAL_HEIGHT,
        console: Console | None = None,
        key_reader: Callable[[], str] | None = None,
    ):
        self.height = height
        self.console = console or Console()
        self.key_reader = key_reader
        self.selector: ScopeSelector | None = None

    def run(self, title: str, items: Sequence[SelectionItem]) -> SelectionResult:
        """Show the selector and return what the user chose.

        Raises:
            SelectorError: If there is no interactive terminal or input fails.
        """
        key_reader = self.key_reader
        if key_reader is None:
            if not sys.stdin.isatty():
                raise SelectorError("terminal error: standard input is not a terminal")
            key_reader = read_key

        selector = ScopeSelector(
            title, items, page_size=page_size_for_height(self.height)
        )
        self.selector = selector
        logger.debug(
            f"Created {len(selector.service_items)} terminal items for user selection"
        )

        try:
            with self.console.screen() as screen:
                screen.update(render_selector(selector))
                while not selector.finished:
                    selector.handle_key(key_reader())
                    screen.update(render_selector(selector))
        except OSError as e:
            raise SelectorError(f"terminal error: {e}") from e

        result = selector.result()
        logger.debug(f"User selected {len(result.scopes)} scopes")
        return result

    def has_been_validated(self) -> bool:
        return self.selector is not None and self.selector.validated
