"""Hierarchical multi-select state machine (services > scopes > confirmation).

The selector is driven by key names (``"tab"``, ``"enter"``, ``" "``,
``"esc"``, ``"q"``, ``"ctrl+c"``, ``"ctrl+l"``, ``"/"``, arrows, ...) and
knows nothing about the terminal; ``terminal.app`` feeds it keys and
``terminal.render`` draws it.

    selector = ScopeSelector("Select Google Scopes OAuth 2.0", items)
    for key in ("tab", " ", "enter", "down", "enter"):
        selector.handle_key(key)
    selector.result()  # SelectionResult(scopes=[...], validated=True)
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from google_auth_wizard.terminal.items import (
    CHOSEN_DESCRIPTION,
    ConfirmAction,
    OrderedSelection,
    ScopeLeaf,
    SelectionItem,
    ServiceHeader,
)

logger = logging.getLogger(__name__)

CONFIRM_LABEL = "Confirm Selection"
DEFAULT_PAGE_SIZE = 10

QUIT_KEYS = frozenset({"q", "ctrl+c"})
UP_KEYS = frozenset({"up", "k"})
DOWN_KEYS = frozenset({"down", "j"})
PREV_PAGE_KEYS = frozenset({"left", "h", "pgup"})
NEXT_PAGE_KEYS = frozenset({"right", "l", "pgdown"})
HOME_KEYS = frozenset({"home", "g"})
END_KEYS = frozenset({"end", "G"})


class ViewState(enum.Enum):
    SERVICES = "services"
    SCOPES = "scopes"
    CONFIRM = "confirm"


class FilterState(enum.Enum):
    UNFILTERED = "unfiltered"
    FILTERING = "filtering"
    APPLIED = "applied"


@dataclass(frozen=True)
class SelectionResult:
    """Chosen scope urls in the order they were picked."""

    scopes: list[str]
    validated: bool

    @property
    def cancelled(self) -> bool:
        return not self.validated


class ScopeSelector:
    """Navigation, selection and filter state of the scope picker.

    Attributes:
        view: The live view.
        breadcrumb: Navigation labels, one per level (1 to 3 entries).
        chosen: Selected scope urls, insertion ordered, shared by all views.
        cursor: Index of the highlighted row in ``visible_items``.
        finished: True once the user confirmed or quit.
        validated: True only if the user activated the confirm row.
    """

    def __init__(
        self,
        title: str,
        items: Sequence[SelectionItem],
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.service_items: list[ServiceHeader] = [
            item for item in items if isinstance(item, ServiceHeader)
        ]
        self.scope_items: list[ScopeLeaf] = []
        self.current_service: str | None = None
        self.view = ViewState.SERVICES
        self.breadcrumb: list[str] = [title]
        self.chosen = OrderedSelection()
        self.cursor = 0
        self.page_size = max(1, page_size)
        self.filter_state = FilterState.UNFILTERED
        self.filter_text = ""
        self.finished = False
        self.validated = False
        self._confirm_origin = ViewState.SERVICES
        self._cursor_stack: list[int] = []

    # --- Live list ---

    @property
    def title(self) -> str:
        return self.breadcrumb[-1]

    @property
    def items(self) -> list[SelectionItem]:
        """Items of the live view, before filtering."""
        if self.view is ViewState.SERVICES:
            return list(self.service_items)
        if self.view is ViewState.SCOPES:
            return list(self.scope_items)
        rows: list[SelectionItem] = [
            ScopeLeaf(title=url, description=CHOSEN_DESCRIPTION, value=url)
            for url in self.chosen
        ]
        rows.append(ConfirmAction())
        return rows

    @property
    def visible_items(self) -> list[SelectionItem]:
        """Items of the live view narrowed by the filter text."""
        items = self.items
        if self.filter_state is FilterState.UNFILTERED or not self.filter_text:
            return items
        needle = self.filter_text.lower()
        return [item for item in items if needle in item.title.lower()]

    @property
    def current_item(self) -> SelectionItem | None:
        visible = self.visible_items
        if not visible:
            return None
        return visible[min(self.cursor, len(visible) - 1)]

    @property
    def page(self) -> int:
        return self.cursor // self.page_size

    @property
    def page_count(self) -> int:
        count = len(self.visible_items)
        return max(1, (count + self.page_size - 1) // self.page_size)

    def page_items(self) -> list[tuple[int, SelectionItem]]:
        """(index, item) pairs of the page holding the cursor."""
        start = self.page * self.page_size
        visible = self.visible_items
        return list(enumerate(visible))[start : start + self.page_size]

    def status_line(self) -> str:
        if self.filter_state is FilterState.FILTERING:
            return "Filtering... | Esc to cancel | Enter to apply"
        count = len(self.chosen)
        if self.view is ViewState.SERVICES:
            if count:
                return (
                    f"Selected: {count} scopes | Tab to enter service | "
                    "Enter to confirm | Type to filter | q to quit"
                )
            return "Tab to enter service | Type to filter | q to quit"
        if self.view is ViewState.SCOPES:
            return (
                f"Selected: {count} scopes | Space to select/deselect | "
                "Enter to confirm | Type to filter | Ctrl+L to clear filter | "
                "Esc to go back | q to quit"
            )
        return "Enter to confirm | Esc to go back | q to quit"

    def result(self) -> SelectionResult:
        return SelectionResult(scopes=self.chosen.as_list(), validated=self.validated)

    # --- Input ---

    def handle_key(self, key: str) -> bool:
        """Apply one key press. Returns True once the selector has finished."""
        if self.finished:
            return True

        if key == "ctrl+c":
            self._quit()
        elif self.filter_state is FilterState.FILTERING:
            self._handle_filter_key(key)
        elif key in QUIT_KEYS:
            self._quit()
        elif key == "esc":
            self.back()
        elif key == "tab":
            self.enter_service()
        elif key == "enter":
            if self.view is ViewState.CONFIRM:
                self.activate()
            else:
                self.request_confirm()
        elif key == " ":
            self.toggle()
        elif key == "ctrl+l":
            self.clear_filter()
        elif key == "/":
            self.start_filter()
        else:
            self._move(key)
        return self.finished

    def _handle_filter_key(self, key: str) -> None:
        if key == "esc":
            self.clear_filter()
        elif key == "enter":
            self.filter_state = (
                FilterState.APPLIED if self.filter_text else FilterState.UNFILTERED
            )
            self.cursor = 0
        elif key == "backspace":
            self.filter_text = self.filter_text[:-1]
            self.cursor = 0
        elif key == " " or (key.isprintable() and len(key) == 1):
            self.filter_text += key
            self.cursor = 0
        elif key in UP_KEYS | DOWN_KEYS and len(key) > 1:
            self._move(key)

    def _move(self, key: str) -> None:
        last = len(self.visible_items) - 1
        if last < 0:
            self.cursor = 0
            return
        if key in UP_KEYS:
            self.cursor = max(0, self.cursor - 1)
        elif key in DOWN_KEYS:
            self.cursor = min(last, self.cursor + 1)
        elif key in PREV_PAGE_KEYS:
            self.cursor = max(0, (self.page - 1) * self.page_size)
        elif key in NEXT_PAGE_KEYS:
            self.cursor = min(last, (self.page + 1) * self.page_size)
        elif key in HOME_KEYS:
            self.cursor = 0
        elif key in END_KEYS:
            self.cursor = last

    # --- Transitions ---

    def enter_service(self) -> bool:
        """Open the highlighted service. Only from SERVICES, on a non-empty header."""
        item = self.current_item
        if self.view is not ViewState.SERVICES:
            return False
        if not isinstance(item, ServiceHeader) or not item.children:
            return False
        self._cursor_stack.append(self.cursor)
        self.view = ViewState.SCOPES
        self.current_service = item.title
        self.scope_items = list(item.children)
        self.breadcrumb.append(item.title)
        self._reset_filter()
        self.cursor = 0
        logger.debug(f"Entered service {item.title} ({len(item.children)} scopes)")
        return True

    def toggle(self) -> bool:
        """Flip the highlighted leaf in ``chosen``. Only in SCOPES."""
        item = self.current_item
        if self.view is not ViewState.SCOPES or not isinstance(item, ScopeLeaf):
            return False
        if not item.value:
            return False
        self.chosen.toggle(item.value)
        return True

    def request_confirm(self) -> bool:
        """Move to CONFIRM when at least one scope is chosen."""
        if self.view is ViewState.CONFIRM or not self.chosen:
            return False
        self._cursor_stack.append(self.cursor)
        self._confirm_origin = self.view
        self.view = ViewState.CONFIRM
        self.breadcrumb.append(CONFIRM_LABEL)
        self._reset_filter()
        self.cursor = 0
        return True

    def activate(self) -> bool:
        """Finish, validated, when the confirm row is highlighted in CONFIRM."""
        if self.view is not ViewState.CONFIRM:
            return False
        if not isinstance(self.current_item, ConfirmAction):
            return False
        self.validated = True
        self.finished = True
        logger.debug(f"Selection confirmed with {len(self.chosen)} scopes")
        return True

    def back(self) -> bool:
        """Return to the previous view, clearing any filter."""
        self._reset_filter()
        if self.view is ViewState.SERVICES:
            return False
        if self.view is ViewState.SCOPES:
            self.view = ViewState.SERVICES
            self.current_service = None
        else:
            self.view = self._confirm_origin
        if len(self.breadcrumb) > 1:
            self.breadcrumb.pop()
        self.cursor = self._cursor_stack.pop() if self._cursor_stack else 0
        self.cursor = min(self.cursor, max(0, len(self.items) - 1))
        return True

    def start_filter(self) -> None:
        self.filter_state = FilterState.FILTERING
        self.filter_text = ""
        self.cursor = 0

    def clear_filter(self) -> None:
        if self.filter_state is not FilterState.UNFILTERED:
            self.cursor = 0
        self._reset_filter()

    def _reset_filter(self) -> None:
        self.filter_state = FilterState.UNFILTERED
        self.filter_text = ""

    def _quit(self) -> None:
        self.finished = True
        self.validated = False
