from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

from .client import FpmClient, FpmError

logger = logging.getLogger(__name__)

REQUIRED_CATEGORY = "core"

_GROUP_TAGS = frozenset({"category", "list"})
_COMPONENT_TAG = "component"


class ManifestError(FpmError):
    pass


@dataclass
class Component:
    id: str
    title: str = ""
    description: str = ""
    url: str = ""
    directory: str = ""
    hash: str = ""
    download_size: int = 0
    install_size: int = 0
    last_updated: datetime | None = None
    depends: tuple[str, ...] = ()

    # Local state, filled in by fpm.state.reconcile().
    installed: bool = False
    stale: bool = False
    previous_install_size: int = 0

    @property
    def required(self) -> bool:
        return matches_token(self.id, REQUIRED_CATEGORY)


def matches_token(component_id: str, token: str) -> bool:
    """True if ``component_id`` is ``token`` itself or lives beneath the ``token`` category."""
    return component_id == token or component_id.startswith(token + "-")


@dataclass
class Catalog:
    repo_url: str = ""
    _by_id: dict[str, Component] = field(default_factory=dict)

    def add(self, component: Component) -> bool:
        if component.id in self._by_id:
            return False
        self._by_id[component.id] = component
        return True

    def get(self, component_id: str) -> Component | None:
        return self._by_id.get(component_id)

    def find(self, token: str) -> list[Component]:
        return [c for c in self._by_id.values() if matches_token(c.id, token)]

    def ids(self) -> list[str]:
        return list(self._by_id)

    def __iter__(self) -> Iterator[Component]:
        return iter(list(self._by_id.values()))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._by_id


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _join_id(parent_id: str, node_id: str) -> str:
    if parent_id and node_id:
        return f"{parent_id}-{node_id}"
    return parent_id or node_id


def _parse_int(raw: str | None) -> int:
    try:
        return int((raw or "").strip())
    except ValueError:
        return 0


def _parse_timestamp(raw: str | None) -> datetime | None:
    try:
        return datetime.fromtimestamp(int((raw or "").strip()), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _component_from_element(el: ET.Element, full_id: str, repo_url: str) -> Component:
    return Component(
        id=full_id,
        title=el.get("title", ""),
        description=el.get("description", ""),
        url=f"{repo_url}{full_id}.zip",
        directory=el.get("path", ""),
        hash=el.get("hash", ""),
        download_size=_parse_int(el.get("download-size")),
        install_size=_parse_int(el.get("install-size")),
        last_updated=_parse_timestamp(el.get("date-modified")),
        depends=tuple((el.get("depends") or "").split()),
    )


def parse_manifest(data: bytes | str) -> Catalog:
    """
    Flatten a nested component manifest into a Catalog.

    The root element carries the repository base URL in its ``url`` attribute. Below it,
    ``category`` and ``list`` elements only contribute their ``id`` to the hierarchical
    component ID; ``component`` elements become catalog entries. Traversal is depth-first
    in document order so the catalog keeps manifest order.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ManifestError(f"Malformed manifest: {e}") from e

    repo_url = (root.get("url") or "").strip()
    if repo_url and not repo_url.endswith("/"):
        repo_url += "/"

    catalog = Catalog(repo_url=repo_url)
    stack: list[tuple[ET.Element, str]] = [(child, "") for child in reversed(list(root))]
    while stack:
        el, parent_id = stack.pop()
        tag = _local_name(el.tag) if isinstance(el.tag, str) else ""
        if tag != _COMPONENT_TAG and tag not in _GROUP_TAGS:
            continue

        full_id = _join_id(parent_id, (el.get("id") or "").strip())
        if tag == _COMPONENT_TAG and not full_id:
            logger.warning("Skipping component without an id at the manifest root")
        elif tag == _COMPONENT_TAG:
            component = _component_from_element(el, full_id, repo_url)
            if not catalog.add(component):
                logger.warning("Duplicate component id %r in manifest; keeping the first one", full_id)

        stack.extend((child, full_id) for child in reversed(list(el)))

    logger.debug("Parsed %d components from manifest (repo %s)", len(catalog), repo_url or "<none>")
    return catalog


def fetch_catalog(client: FpmClient, source_url: str) -> Catalog:
    return parse_manifest(client.get_bytes(source_url))
