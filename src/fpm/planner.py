from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from .manifest import Catalog, Component
from .resolver import find_components, resolve


class Origin(enum.Enum):
    EXPLICIT = "explicit"
    IMPLICIT_DEPENDENCY = "implicit-dependency"


@dataclass(frozen=True)
class DownloadPlan:
    components: tuple[Component, ...]
    notices: tuple[str, ...] = ()

    @property
    def download_size(self) -> int:
        return sum(c.download_size for c in self.components)

    @property
    def install_size(self) -> int:
        return sum(c.install_size for c in self.components)


@dataclass(frozen=True)
class RemovePlan:
    components: tuple[Component, ...]
    notices: tuple[str, ...] = ()

    @property
    def freed_size(self) -> int:
        return sum(c.install_size for c in self.components)


@dataclass(frozen=True)
class UpdatePlan:
    to_update: tuple[Component, ...]
    to_download: tuple[Component, ...]
    notices: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_update and not self.to_download

    @property
    def download_size(self) -> int:
        return sum(c.download_size for c in (*self.to_update, *self.to_download))

    @property
    def changed_size(self) -> int:
        updated = sum(c.install_size - c.previous_install_size for c in self.to_update)
        return updated + sum(c.install_size for c in self.to_download)


def _missing_notice(token: str, *, skipped: bool = False) -> str:
    suffix = " and will be skipped" if skipped else ""
    return f"Component or category {token} does not exist{suffix}"


def _unique(components: Iterable[Component]) -> tuple[Component, ...]:
    seen: set[str] = set()
    out: list[Component] = []
    for c in components:
        if c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return tuple(out)


def plan_download(catalog: Catalog, tokens: Iterable[str]) -> DownloadPlan:
    resolution = resolve(catalog, tokens, lambda c: not c.installed)
    notices = tuple(_missing_notice(token) for token in resolution.missing)
    return DownloadPlan(components=resolution.components, notices=notices)


def plan_remove(catalog: Catalog, tokens: Iterable[str]) -> RemovePlan:
    """Plan removal of exactly the named components and categories, without following dependencies."""
    queue: list[Component] = []
    notices: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        matches = find_components(catalog, token)
        if not matches:
            notices.append(_missing_notice(token, skipped=True))
            continue
        for component in matches:
            if component.id in seen:
                continue
            seen.add(component.id)
            if not component.installed:
                notices.append(f"Component {component.id} is not downloaded and will be skipped")
                continue
            queue.append(component)
    return RemovePlan(components=tuple(queue), notices=tuple(notices))


def _plan_targeted_update(catalog: Catalog, tokens: list[str]) -> UpdatePlan:
    to_update: list[Component] = []
    to_download: list[Component] = []
    notices: list[str] = []
    visited: set[str] = set()

    def _visit(token: str, origin: Origin) -> None:
        matches = find_components(catalog, token)
        if not matches:
            if origin is Origin.EXPLICIT:
                notices.append(_missing_notice(token))
            return

        for component in matches:
            if component.id in visited:
                continue
            visited.add(component.id)

            if not component.installed:
                if origin is Origin.IMPLICIT_DEPENDENCY:
                    to_download.append(component)
                else:
                    notices.append(f"Component {component.id} is not downloaded and will be skipped")
                continue

            if not component.stale:
                if origin is Origin.EXPLICIT:
                    notices.append(f"Component {component.id} is already up-to-date and will be skipped")
                continue

            to_update.append(component)
            for dep in component.depends:
                _visit(dep, Origin.IMPLICIT_DEPENDENCY)

    for token in tokens:
        _visit(token, Origin.EXPLICIT)

    return UpdatePlan(to_update=_unique(to_update), to_download=_unique(to_download), notices=tuple(notices))


def _plan_full_update(catalog: Catalog) -> UpdatePlan:
    to_update = [c for c in catalog if c.installed and c.stale]
    to_download = [c for c in catalog if c.required and not c.installed]
    return UpdatePlan(to_update=_unique(to_update), to_download=_unique(to_download))


def plan_update(catalog: Catalog, tokens: Iterable[str]) -> UpdatePlan:
    """
    Plan an update run.

    With tokens, stale matches are updated and their dependencies are pulled in: a missing
    dependency is downloaded, a current one is left alone. Without tokens, every stale
    component is updated and every required component that is not installed is downloaded.
    """
    requested = list(tokens)
    if requested:
        return _plan_targeted_update(catalog, requested)
    return _plan_full_update(catalog)
