from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_path, user_data_path

DEFAULT_SOURCE_URL = "https://nexus-dev.unstable.life/repository/stable/components.xml"
DEFAULT_TIMEOUT_S = 10.0
CONFIG_FILENAME = "fpm.cfg"


def default_install_root() -> Path:
    return user_data_path("fpm")


@dataclass(frozen=True)
class Config:
    install_root: Path = field(default_factory=default_install_root)
    source_url: str = DEFAULT_SOURCE_URL
    timeout_s: float = DEFAULT_TIMEOUT_S


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("FPM_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path("fpm") / CONFIG_FILENAME


def load_config(path_override: str | Path | None = None) -> Config:
    """
    Read the two-line config file: install root on line 1, manifest source URL on line 2.

    Missing or blank lines keep their defaults.
    """
    path = config_path(path_override)
    if not path.exists():
        return Config()

    lines = path.read_text(encoding="utf-8").splitlines()
    defaults = Config()
    install_root = defaults.install_root
    source_url = defaults.source_url
    if len(lines) > 0 and lines[0].strip():
        install_root = Path(lines[0].strip()).expanduser()
    if len(lines) > 1 and lines[1].strip():
        source_url = lines[1].strip()
    return Config(install_root=install_root, source_url=source_url, timeout_s=defaults.timeout_s)


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(f"{cfg.install_root}\n{cfg.source_url}\n", encoding="utf-8")
    tmp.replace(path)
    return path
