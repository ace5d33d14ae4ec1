from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .manifest import Catalog

logger = logging.getLogger(__name__)

RECORDS_DIRNAME = "Components"


@dataclass(frozen=True)
class RecordHeader:
    hash: str
    size: int = 0
    depends: tuple[str, ...] = ()

    def format(self) -> str:
        return " ".join([self.hash, str(self.size), *self.depends])

    @classmethod
    def parse(cls, line: str) -> "RecordHeader":
        parts = line.split()
        if not parts:
            return cls(hash="")
        size = 0
        if len(parts) > 1:
            try:
                size = int(parts[1])
            except ValueError:
                size = 0
        return cls(hash=parts[0], size=size, depends=tuple(parts[2:]))


@dataclass(frozen=True)
class InstallRecord:
    component_id: str
    header: RecordHeader
    files: tuple[str, ...] = ()

    def render(self) -> str:
        return "\n".join([self.header.format(), *self.files])


def records_dir(install_root: Path) -> Path:
    return install_root / RECORDS_DIRNAME


def record_path(install_root: Path, component_id: str) -> Path:
    return records_dir(install_root) / component_id


def read_record_header(path: Path) -> RecordHeader | None:
    """Return the parsed first line of a record, or None when the record does not exist."""
    if not path.is_file():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            first = f.readline()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read installation record %s: %s", path, e)
        return RecordHeader(hash="")
    return RecordHeader.parse(first)


def read_record(install_root: Path, component_id: str) -> InstallRecord | None:
    path = record_path(install_root, component_id)
    if not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8").splitlines()
    header = RecordHeader.parse(lines[0] if lines else "")
    files = tuple(line.strip() for line in lines[1:] if line.strip())
    return InstallRecord(component_id=component_id, header=header, files=files)


def write_record(install_root: Path, record: InstallRecord) -> Path:
    path = record_path(install_root, record.component_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(record.render(), encoding="utf-8")
    tmp.replace(path)
    logger.debug("Wrote installation record %s (%d files)", path, len(record.files))
    return path


def reconcile(catalog: Catalog, install_root: Path) -> None:
    """
    Annotate every catalog component with its local installation state.

    A component is installed when its record exists. It is stale when the hash in the
    record header differs from the manifest hash; the previously recorded install size is
    kept for update size estimates. The filesystem is only read, never written.
    """
    for component in catalog:
        header = read_record_header(record_path(install_root, component.id))
        component.installed = header is not None
        component.stale = header is not None and header.hash != component.hash
        component.previous_install_size = header.size if component.stale and header is not None else 0
