from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from .client import FpmClient, FpmError
from .manifest import Component
from .state import InstallRecord, RecordHeader, read_record, record_path, write_record

logger = logging.getLogger(__name__)


class UnsafeArchiveError(FpmError):
    pass


@dataclass(frozen=True)
class RemoveOutcome:
    removed: tuple[str, ...]
    failed: tuple[tuple[str, str], ...] = ()


def _is_strictly_under(path: str, base: str) -> bool:
    return path.startswith(base.rstrip(os.sep) + os.sep)


def _is_within(path: str, base: str) -> bool:
    return path == base or _is_strictly_under(path, base)


def safe_extract_zip(archive: str | Path | BinaryIO, dest: Path) -> list[str]:
    """
    Extract ``archive`` into ``dest`` and return the written paths, relative to ``dest``.

    All entries are checked before anything is written: an absolute name or one that
    resolves outside ``dest`` rejects the whole archive. Returned paths are normalized
    (``a/../b`` becomes ``b``), unique, and in archive order. Directory entries are not
    returned; directories are created as needed.
    """
    base = str(dest.resolve())
    try:
        zf = zipfile.ZipFile(archive, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise FpmError(f"Could not open archive: {e}") from e

    with zf:
        members: list[tuple[zipfile.ZipInfo, Path]] = []
        for info in zf.infolist():
            name = info.filename
            if not name or info.is_dir():
                continue
            if name.startswith(("/", "\\")) or PurePosixPath(name).is_absolute():
                raise UnsafeArchiveError(f"Archive contains an absolute path entry: {name!r}")
            target = (dest / name).resolve()
            if not _is_strictly_under(str(target), base):
                raise UnsafeArchiveError(f"Archive contains an entry outside the destination: {name!r}")
            members.append((info, target))

        dest.mkdir(parents=True, exist_ok=True)
        extracted: dict[str, None] = {}
        for info, target in members:
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with zf.open(info, "r") as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
            except (zipfile.BadZipFile, NotImplementedError) as e:
                raise FpmError(f"Corrupt archive entry {info.filename!r}: {e}") from e
            extracted[target.relative_to(base).as_posix()] = None
    return list(extracted)


def component_destination(install_root: Path, component: Component) -> Path:
    dest = install_root / PurePosixPath(component.directory.replace("\\", "/"))
    if not _is_within(str(dest.resolve()), str(install_root.resolve())):
        raise UnsafeArchiveError(f"Install path of {component.id} escapes the install root: {component.directory!r}")
    return dest


def install_component(client: FpmClient, component: Component, install_root: Path) -> InstallRecord | None:
    """
    Download, extract and record one component.

    Components with an install size of zero have nothing to fetch and are skipped (None).
    Any transport, archive or filesystem error propagates to the caller.
    """
    if component.install_size == 0:
        logger.debug("Component %s has nothing to install", component.id)
        return None

    dest = component_destination(install_root, component)
    with tempfile.TemporaryDirectory(prefix="fpm-") as td:
        archive = Path(td) / f"{component.id}.zip"
        with archive.open("wb") as out:
            client.download_to(component.url, out)
        logger.debug("Extracting %s into %s", component.id, dest)
        names = safe_extract_zip(archive, dest)

    prefix = dest.resolve().relative_to(install_root.resolve())
    files = tuple((prefix / name).as_posix() for name in names)
    record = InstallRecord(
        component_id=component.id,
        header=RecordHeader(hash=component.hash, size=component.install_size, depends=component.depends),
        files=files,
    )
    write_record(install_root, record)
    return record


def _prune_empty_dirs(start: Path, install_root: Path) -> None:
    root = os.path.abspath(install_root)
    current = os.path.abspath(start)
    while current != root and _is_strictly_under(current, root):
        try:
            os.rmdir(current)
        except OSError:
            # Not empty, already gone, or not removable: leave it in place.
            return
        current = os.path.dirname(current)


def _delete_and_prune(path: Path, install_root: Path) -> str | None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        return e.strerror or str(e)
    _prune_empty_dirs(path.parent, install_root)
    return None


def remove_component(component_id: str, install_root: Path) -> RemoveOutcome:
    """
    Delete every file listed in a component's record, prune directories left empty, then
    delete the record itself.

    Files that are already gone count as removed. Other deletion failures do not stop the
    removal; they are returned in ``failed`` as ``(path, reason)`` pairs.
    """
    removed: list[str] = []
    failed: list[tuple[str, str]] = []
    root = os.path.abspath(install_root)

    try:
        record = read_record(install_root, component_id)
    except (OSError, UnicodeDecodeError) as e:
        # Keep the record so the removal can be retried once it is readable.
        logger.warning("Could not read installation record for %s: %s", component_id, e)
        return RemoveOutcome(removed=(), failed=((str(record_path(install_root, component_id)), str(e)),))

    for line in record.files if record else ():
        path = install_root / line
        if not _is_strictly_under(os.path.abspath(path), root):
            failed.append((line, "path is outside the install root"))
            continue
        reason = _delete_and_prune(path, install_root)
        if reason is None:
            removed.append(line)
        else:
            logger.warning("Could not delete %s: %s", path, reason)
            failed.append((line, reason))

    reason = _delete_and_prune(record_path(install_root, component_id), install_root)
    if reason is not None:
        logger.warning("Could not delete installation record for %s: %s", component_id, reason)
        failed.append((str(record_path(install_root, component_id)), reason))

    logger.debug("Removed %s: %d files deleted, %d failures", component_id, len(removed), len(failed))
    return RemoveOutcome(removed=tuple(removed), failed=tuple(failed))
