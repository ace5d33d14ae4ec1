from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from .manifest import Catalog, Component


@dataclass(frozen=True)
class Resolution:
    components: tuple[Component, ...]
    missing: tuple[str, ...]

    @property
    def ids(self) -> list[str]:
        return [c.id for c in self.components]


def find_components(catalog: Catalog, token: str) -> list[Component]:
    return catalog.find(token)


def resolve(
    catalog: Catalog,
    tokens: Iterable[str],
    include: Callable[[Component], bool],
) -> Resolution:
    """
    Expand requested IDs or category prefixes into a dependency-closed queue.

    Each component is visited at most once. A visited component enters the queue only
    if ``include`` accepts it, and only then are its dependencies followed (each one
    checked against ``include`` on its own). With no tokens, every catalog component is
    requested.
    """
    requested = list(tokens)
    if not requested:
        requested = catalog.ids()

    queue: list[Component] = []
    missing: list[str] = []
    visited: set[str] = set()

    def _add(token: str) -> None:
        matches = find_components(catalog, token)
        if not matches:
            if token not in missing:
                missing.append(token)
            return
        for component in matches:
            if component.id in visited:
                continue
            visited.add(component.id)
            if not include(component):
                continue
            queue.append(component)
            for dep in component.depends:
                _add(dep)

    for token in requested:
        _add(token)

    return Resolution(components=tuple(queue), missing=tuple(missing))
