"""Rich rendering of the scope selector."""

from __future__ import annotations

from rich.console import Group
from rich.style import Style
from rich.text import Text

from google_auth_wizard.terminal.items import (
    OrderedSelection,
    ScopeLeaf,
    SelectionItem,
    ServiceHeader,
)
from google_auth_wizard.terminal.selector import FilterState, ScopeSelector

DESCRIPTION_LIMIT = 60
CURSOR_MARKER = "> "
CHOSEN_MARKER = "(•) "
UNCHOSEN_MARKER = "( ) "

TITLE_STYLE = Style(color="#FFFFFF", bold=True)
ITEM_STYLE = Style()
SELECTED_ITEM_STYLE = Style(color="#3498DB", bold=True)
DIM_STYLE = Style(dim=True)


def page_size_for_height(height: int) -> int:
    """Each row takes two lines."""
    return max(1, height // 2)


def truncate_description(description: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(description) > limit:
        return description[:limit] + "..."
    return description


def format_row(
    item: SelectionItem, selected: bool, chosen: OrderedSelection
) -> tuple[str, str]:
    """Plain text of one row: (first line, second line)."""
    if isinstance(item, ServiceHeader):
        text = item.title
        if item.children:
            text += f" ({len(item.children)} scopes)"
        if selected:
            return "  " + CURSOR_MARKER + text, ""
        return "  " + text, ""

    line = CURSOR_MARKER if selected else ""
    if isinstance(item, ScopeLeaf):
        line += CHOSEN_MARKER if item.value in chosen else UNCHOSEN_MARKER
    line += item.title

    description = ""
    if item.description:
        description = "      " + truncate_description(item.description)

    indent = "  " if selected else "    "
    return indent + line, (indent + description if description else "")


def pagination_dots(page: int, page_count: int) -> str:
    if page_count <= 1:
        return ""
    return " ".join("•" if index == page else "○" for index in range(page_count))


def render_selector(selector: ScopeSelector) -> Group:
    """Breadcrumb, the page holding the cursor, pagination and status line."""
    lines: list[Text] = [
        Text(""),
        Text("  " + " > ".join(selector.breadcrumb), style=TITLE_STYLE),
        Text(""),
    ]

    if selector.filter_state is not FilterState.UNFILTERED:
        lines.append(Text(f"  Filter: {selector.filter_text}", style=DIM_STYLE))

    rows = selector.page_items()
    if not rows:
        lines.append(Text("    No items.", style=DIM_STYLE))
    for index, item in rows:
        selected = index == selector.cursor
        first, second = format_row(item, selected, selector.chosen)
        if selected:
            style = SELECTED_ITEM_STYLE
        elif isinstance(item, ServiceHeader):
            style = TITLE_STYLE
        else:
            style = ITEM_STYLE
        lines.append(Text(first, style=style))
        lines.append(Text(second, style=style if selected else DIM_STYLE))

    dots = pagination_dots(selector.page, selector.page_count)
    if dots:
        lines.append(Text("    " + dots, style=DIM_STYLE))

    lines.append(Text(""))
    lines.append(Text(selector.status_line()))
    return Group(*lines)
