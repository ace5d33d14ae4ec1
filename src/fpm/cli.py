from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import textwrap
from dataclasses import replace
from pathlib import Path
from typing import Any

from ._version import __version__
from .client import FpmClient, FpmError, FpmHTTPError
from .config import Config, config_path, load_config, save_config
from .manager import ComponentManager, OperationResult
from .manifest import Component

LIST_FILTERS = ("available", "downloaded", "updates")


def format_bytes(n: int) -> str:
    if n < 0:
        return "-" + format_bytes(-n)
    unit = 1024
    if n < unit:
        return f"{n} B"
    div, exp = unit, 0
    m = n // unit
    while m >= unit:
        div *= unit
        exp += 1
        m //= unit
    return f"{n / div:.1f} {'KMGTPE'[exp]}B"


def _print_table(rows: list[list[str]]) -> None:
    if not rows:
        return
    widths = [0] * len(rows[0])
    for r in rows:
        for i, c in enumerate(r):
            widths[i] = max(widths[i], len(c))
    for r in rows:
        line = "  ".join(c.ljust(widths[i]) for i, c in enumerate(r))
        print(line.rstrip())


def _confirm(msg: str) -> bool:
    while True:
        try:
            answer = input(f"{msg} [y/n]: ").strip().lower()
        except EOFError:
            print()
            return False
        if answer == "y":
            return True
        if answer == "n":
            return False


def _merge_cfg(base: Config, args: argparse.Namespace) -> Config:
    # Env overrides config; CLI overrides both.
    install_root = getattr(args, "install_root", None) or os.getenv("FPM_INSTALL_ROOT")
    source_url = getattr(args, "source_url", None) or os.getenv("FPM_SOURCE_URL") or base.source_url
    timeout_s = getattr(args, "timeout_s", None) or os.getenv("FPM_TIMEOUT_S") or base.timeout_s
    try:
        timeout_s_f = float(timeout_s)
    except (TypeError, ValueError):
        timeout_s_f = base.timeout_s
    return Config(
        install_root=Path(install_root).expanduser() if install_root else base.install_root,
        source_url=source_url,
        timeout_s=timeout_s_f,
    )


def _component_payload(c: Component) -> dict[str, Any]:
    return {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "directory": c.directory,
        "url": c.url,
        "hash": c.hash,
        "download_size": c.download_size,
        "install_size": c.install_size,
        "last_updated": c.last_updated.strftime("%Y-%m-%d %H:%M:%S") if c.last_updated else None,
        "depends": list(c.depends),
        "required": c.required,
        "installed": c.installed,
        "stale": c.stale,
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fpm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Component manager: download, update and remove components from a remote manifest.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              FPM_CONFIG_PATH, FPM_INSTALL_ROOT, FPM_SOURCE_URL, FPM_TIMEOUT_S
            """
        ),
    )

    def _add_runtime_overrides(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--install-root", help="Install root directory (overrides config/env)")
        parser.add_argument("--source-url", help="Component manifest URL (overrides config/env)")
        parser.add_argument("--timeout-s", type=float, help="HTTP timeout in seconds")

    p.add_argument("--version", action="version", version=f"fpm {__version__}")
    p.add_argument("--debug", action="store_true", help="Log debug output to stderr")

    sub = p.add_subparsers(dest="cmd", required=True)

    lst = sub.add_parser("list", aliases=["ls"], help="List components")
    _add_runtime_overrides(lst)
    lst.add_argument("filter", nargs="?", choices=LIST_FILTERS, help="Only show components in this state")
    lst.add_argument("--verbose", action="store_true", help="Show component titles")
    lst.add_argument("--json", action="store_true", help="Output JSON")

    info = sub.add_parser("info", help="Show details of one component")
    _add_runtime_overrides(info)
    info.add_argument("component", help="Exact component ID")
    info.add_argument("--json", action="store_true", help="Output JSON")

    download = sub.add_parser("download", aliases=["install"], help="Download components and their dependencies")
    _add_runtime_overrides(download)
    download.add_argument("components", nargs="*", help="Component IDs or categories (default: everything)")
    download.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    remove = sub.add_parser("remove", aliases=["rm"], help="Remove components (dependencies are kept)")
    _add_runtime_overrides(remove)
    remove.add_argument("components", nargs="+", help="Component IDs or categories")
    remove.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    update = sub.add_parser("update", help="Update stale components (default: all, plus missing required ones)")
    _add_runtime_overrides(update)
    update.add_argument("components", nargs="*", help="Component IDs or categories")
    update.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    path = sub.add_parser("path", help="Show or set the install root")
    path.add_argument("value", nargs="?", help="New install root")

    source = sub.add_parser("source", help="Show or set the manifest source URL")
    source.add_argument("value", nargs="?", help="New manifest URL")

    cfg = sub.add_parser("config", help="Inspect local config")
    cfg_sub = cfg.add_subparsers(dest="subcmd", required=True)
    cfg_sub.add_parser("path", help="Print config path")
    cfg_sub.add_parser("show", help="Show effective config")

    return p


def _open_manager(args: argparse.Namespace, *, on_progress=None) -> tuple[ComponentManager, FpmClient]:
    cfg = _merge_cfg(load_config(), args)
    client = FpmClient(timeout_s=cfg.timeout_s)
    manager = ComponentManager(install_root=cfg.install_root, client=client, on_progress=on_progress)
    try:
        manager.load(cfg.source_url)
    except Exception:
        client.close()
        raise
    return manager, client


def _print_progress(action: str, component_id: str) -> None:
    verb = {"download": "Downloading", "remove": "Removing", "update": "Updating"}.get(action, action)
    print(f"  {verb} {component_id}...")


def _print_queue(title: str, components: tuple[Component, ...]) -> None:
    print(f"{len(components)} component(s) will be {title}:")
    for c in components:
        print(f"  {c.id}")
    print()


def _print_failures(result: OperationResult, *, action: str) -> None:
    for component_id, message in result.failed:
        print(f"Failed to {action} {component_id}: {message}")
    for warning in result.warnings:
        print(f"warning: {warning}")


def cmd_list(args: argparse.Namespace) -> int:
    manager, client = _open_manager(args)
    client.close()

    components = list(manager.catalog)
    if args.filter == "available":
        components = [c for c in components if not c.installed]
    elif args.filter == "downloaded":
        components = [c for c in components if c.installed]
    elif args.filter == "updates":
        components = [c for c in components if c.stale]

    if args.json:
        print(json.dumps([_component_payload(c) for c in components], indent=2, sort_keys=True))
        return 0

    if len(manager.catalog) == 0:
        print("No components found. Please check your source URL or internet connection.")
        return 0

    for c in components:
        marker = " "
        if c.installed:
            marker = "!" if c.stale else "*"
        line = f"{marker} {c.id}"
        if args.verbose:
            line += f" ({c.title})"
        print(line)
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    manager, client = _open_manager(args)
    client.close()

    c = manager.catalog.get(args.component)
    if c is None:
        raise FpmError(f"Component {args.component} does not exist")

    if args.json:
        print(json.dumps(_component_payload(c), indent=2, sort_keys=True))
        return 0

    payload = _component_payload(c)
    rows = [
        ["ID:", c.id],
        ["Title:", c.title],
        ["Description:", c.description],
        ["Download size:", format_bytes(c.download_size)],
        ["Install size:", format_bytes(c.install_size)],
        ["Last updated:", payload["last_updated"] or ""],
        ["CRC32:", c.hash],
    ]
    _print_table(rows)
    print()
    if c.depends:
        print("Dependencies:")
        for dep in c.depends:
            print(f"  {dep}")
        print()
    rows = [
        ["Required?", "Yes" if c.required else "No"],
        ["Downloaded?", "Yes" if c.installed else "No"],
    ]
    if c.installed:
        rows.append(["Up-to-date?", "No" if c.stale else "Yes"])
    _print_table(rows)
    return 0


def cmd_download(args: argparse.Namespace) -> int:
    manager, client = _open_manager(args, on_progress=_print_progress)
    try:
        plan = manager.plan_download(args.components)
        for notice in plan.notices:
            print(notice)
        if not plan.components:
            print("No components to download")
            return 0

        _print_queue("downloaded", plan.components)
        print(f"Estimated download size: {format_bytes(plan.download_size)}")
        print(f"Estimated install size:  {format_bytes(plan.install_size)}")
        print()
        if not args.yes and not _confirm("Is this OK?"):
            return 0

        result = manager.download(plan)
    finally:
        client.close()

    _print_failures(result, action="download")
    print()
    print(f"Successfully downloaded {len(result.succeeded)} components")
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    manager, client = _open_manager(args, on_progress=_print_progress)
    client.close()

    plan = manager.plan_remove(args.components)
    for notice in plan.notices:
        print(notice)
    if not plan.components:
        print("No components to remove")
        return 0

    _print_queue("removed", plan.components)
    print(f"Estimated freed size: {format_bytes(plan.freed_size)}")
    print()
    if not args.yes and not _confirm("Is this OK?"):
        return 0

    result = manager.remove(plan)
    _print_failures(result, action="remove")
    print()
    print(f"Successfully removed {len(result.succeeded)} components")
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    manager, client = _open_manager(args, on_progress=_print_progress)
    try:
        plan = manager.plan_update(args.components)
        for notice in plan.notices:
            print(notice)
        if plan.is_empty:
            print("No components to update")
            return 0

        if plan.to_update:
            _print_queue("updated", plan.to_update)
        if plan.to_download:
            _print_queue("downloaded", plan.to_download)
        print(f"Estimated download size: {format_bytes(plan.download_size)}")
        print(f"Estimated changed size:  {format_bytes(plan.changed_size)}")
        print()
        if not args.yes and not _confirm("Is this OK?"):
            return 0

        result = manager.update(plan)
    finally:
        client.close()

    _print_failures(result, action="update")
    print()
    msg = f"Successfully updated {len(result.succeeded)} components"
    if plan.to_download:
        msg += f" and downloaded {len(result.downloaded)} components"
    print(msg)
    return 0


def cmd_path(args: argparse.Namespace) -> int:
    cfg = load_config()
    if args.value is None:
        print(str(cfg.install_root))
        return 0
    save_config(replace(cfg, install_root=Path(args.value).expanduser().resolve()))
    return 0


def cmd_source(args: argparse.Namespace) -> int:
    cfg = load_config()
    if args.value is None:
        print(cfg.source_url)
        return 0
    save_config(replace(cfg, source_url=args.value.strip()))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    if args.subcmd == "path":
        print(str(config_path()))
        return 0

    if args.subcmd == "show":
        cfg = _merge_cfg(load_config(), args)
        d = {"install_root": str(cfg.install_root), "source_url": cfg.source_url, "timeout_s": cfg.timeout_s}
        print(json.dumps(d, indent=2, sort_keys=True))
        return 0

    raise AssertionError("unreachable")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        if args.cmd in ("list", "ls"):
            return cmd_list(args)
        if args.cmd == "info":
            return cmd_info(args)
        if args.cmd in ("download", "install"):
            return cmd_download(args)
        if args.cmd in ("remove", "rm"):
            return cmd_remove(args)
        if args.cmd == "update":
            return cmd_update(args)
        if args.cmd == "path":
            return cmd_path(args)
        if args.cmd == "source":
            return cmd_source(args)
        if args.cmd == "config":
            return cmd_config(args)
        raise AssertionError("unreachable")
    except FpmHTTPError as e:
        print(f"error: could not fetch {e.url}: HTTP {e.status_code}", file=sys.stderr)
        return 1
    except FpmError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
