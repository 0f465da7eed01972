"""Items shown by the scope selector."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableSet, Sequence
from dataclasses import dataclass, field
from typing import Protocol, Union

CONFIRM_TITLE = "✓ Confirm Selection"
CONFIRM_DESCRIPTION = "Press Enter to confirm"
CHOSEN_DESCRIPTION = "Selected scope"


class _ScopeLike(Protocol):
    url: str
    description: str


@dataclass(frozen=True)
class ScopeLeaf:
    """A selectable scope. Its identity is ``value`` (the scope url)."""

    title: str
    description: str
    value: str


@dataclass(frozen=True)
class ServiceHeader:
    """A service grouping the scopes it exposes."""

    title: str
    description: str
    children: tuple[ScopeLeaf, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ConfirmAction:
    """The synthetic row that ends the selector when activated."""

    title: str = CONFIRM_TITLE
    description: str = CONFIRM_DESCRIPTION


SelectionItem = Union[ServiceHeader, ScopeLeaf, ConfirmAction]


def build_service_items(
    services: Mapping[str, Sequence[_ScopeLike]],
) -> list[ServiceHeader]:
    """One header per non-empty service, sorted by service name."""
    headers = []
    for name, scopes in services.items():
        if not scopes:
            continue
        children = tuple(
            ScopeLeaf(title=scope.url, description=scope.description, value=scope.url)
            for scope in scopes
        )
        headers.append(
            ServiceHeader(
                title=name,
                description=f"{len(scopes)} scopes available",
                children=children,
            )
        )
    return sorted(headers, key=lambda header: header.title)


class OrderedSelection(MutableSet[str]):
    """Set of scope urls that remembers insertion order."""

    def __init__(self, values: Iterable[str] = ()):
        self._values: dict[str, None] = dict.fromkeys(values)

    def __contains__(self, value: object) -> bool:
        return value in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"OrderedSelection({list(self._values)!r})"

    def add(self, value: str) -> None:
        self._values.setdefault(value, None)

    def discard(self, value: str) -> None:
        self._values.pop(value, None)

    def toggle(self, value: str) -> bool:
        """Flip membership. Returns True if ``value`` is now chosen."""
        if value in self._values:
            del self._values[value]
            return False
        self._values[value] = None
        return True

    def as_list(self) -> list[str]:
        return list(self._values)
