from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .client import FpmClient, FpmError
from .installer import install_component, remove_component
from .manifest import Catalog, Component, fetch_catalog
from .planner import DownloadPlan, RemovePlan, UpdatePlan, plan_download, plan_remove, plan_update
from .state import reconcile

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class OperationResult:
    succeeded: tuple[str, ...]
    failed: tuple[tuple[str, str], ...] = ()
    warnings: tuple[str, ...] = ()
    downloaded: tuple[str, ...] = ()


class ComponentManager:
    """
    Runs download, remove and update plans against one install root.

    The catalog is loaded once per manager and its local state is kept in step with the
    operations performed. Components are processed one at a time; a failing component is
    recorded and the run moves on to the next one.
    """

    def __init__(
        self,
        *,
        install_root: Path,
        client: FpmClient,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.install_root = install_root.expanduser().resolve()
        self.client = client
        self.on_progress = on_progress
        self._catalog: Catalog | None = None

    def load(self, source_url: str) -> Catalog:
        catalog = fetch_catalog(self.client, source_url)
        reconcile(catalog, self.install_root)
        self._catalog = catalog
        return catalog

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            raise FpmError("Component catalog has not been loaded.")
        return self._catalog

    def plan_download(self, tokens: Iterable[str]) -> DownloadPlan:
        return plan_download(self.catalog, tokens)

    def plan_remove(self, tokens: Iterable[str]) -> RemovePlan:
        return plan_remove(self.catalog, tokens)

    def plan_update(self, tokens: Iterable[str]) -> UpdatePlan:
        return plan_update(self.catalog, tokens)

    def _progress(self, action: str, component: Component) -> None:
        if self.on_progress is not None:
            self.on_progress(action, component.id)

    def _install(self, component: Component) -> str | None:
        try:
            record = install_component(self.client, component, self.install_root)
        except (FpmError, OSError) as e:
            logger.debug("Install of %s failed", component.id, exc_info=True)
            return str(e)
        if record is not None:
            component.installed = True
            component.stale = False
            component.previous_install_size = 0
        return None

    def _remove(self, component: Component) -> list[str]:
        outcome = remove_component(component.id, self.install_root)
        component.installed = False
        component.stale = False
        component.previous_install_size = 0
        return [f"Could not delete {path}: {reason}" for path, reason in outcome.failed]

    def download(self, plan: DownloadPlan) -> OperationResult:
        succeeded: list[str] = []
        failed: list[tuple[str, str]] = []
        for component in plan.components:
            self._progress("download", component)
            error = self._install(component)
            if error is None:
                succeeded.append(component.id)
            else:
                failed.append((component.id, error))
        return OperationResult(succeeded=tuple(succeeded), failed=tuple(failed))

    def remove(self, plan: RemovePlan) -> OperationResult:
        succeeded: list[str] = []
        warnings: list[str] = []
        for component in plan.components:
            self._progress("remove", component)
            warnings.extend(self._remove(component))
            succeeded.append(component.id)
        return OperationResult(succeeded=tuple(succeeded), warnings=tuple(warnings))

    def update(self, plan: UpdatePlan) -> OperationResult:
        updated: list[str] = []
        downloaded: list[str] = []
        failed: list[tuple[str, str]] = []
        warnings: list[str] = []

        for component in plan.to_update:
            self._progress("update", component)
            warnings.extend(self._remove(component))
            error = self._install(component)
            if error is None:
                updated.append(component.id)
            else:
                failed.append((component.id, error))

        for component in plan.to_download:
            self._progress("download", component)
            error = self._install(component)
            if error is None:
                downloaded.append(component.id)
            else:
                failed.append((component.id, error))

        return OperationResult(
            succeeded=tuple(updated),
            failed=tuple(failed),
            warnings=tuple(warnings),
            downloaded=tuple(downloaded),
        )
