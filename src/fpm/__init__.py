from ._version import __version__
from .client import FpmClient, FpmError, FpmHTTPError
from .installer import UnsafeArchiveError, install_component, remove_component, safe_extract_zip
from .manager import ComponentManager, OperationResult
from .manifest import Catalog, Component, ManifestError, fetch_catalog, parse_manifest
from .planner import Origin, plan_download, plan_remove, plan_update
from .resolver import Resolution, find_components, resolve
from .state import reconcile

__all__ = [
    "Catalog",
    "Component",
    "ComponentManager",
    "FpmClient",
    "FpmError",
    "FpmHTTPError",
    "ManifestError",
    "OperationResult",
    "Origin",
    "Resolution",
    "UnsafeArchiveError",
    "__version__",
    "fetch_catalog",
    "find_components",
    "install_component",
    "parse_manifest",
    "plan_download",
    "plan_remove",
    "plan_update",
    "reconcile",
    "remove_component",
    "resolve",
    "safe_extract_zip",
]
