"""Terminal scope selector."""

from google_auth_wizard.terminal.items import (
    ConfirmAction,
    OrderedSelection,
    ScopeLeaf,
    SelectionItem,
    ServiceHeader,
    build_service_items,
)
from google_auth_wizard.terminal.selector import (
    ScopeSelector,
    SelectionResult,
    ViewState,
)

__all__ = [
    "ConfirmAction",
    "OrderedSelection",
    "ScopeLeaf",
    "ScopeSelector",
    "SelectionItem",
    "SelectionResult",
    "ServiceHeader",
    "ViewState",
    "build_service_items",
]
