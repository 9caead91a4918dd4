"""package.json intake — merge runtime and dev dependency maps."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class ManifestError(ValueError):
    """Raised when a manifest is not a JSON object or has malformed sections."""


def merge_dependencies(package_json: Any) -> dict[str, str]:
    """Return ``dependencies`` and ``devDependencies`` merged into one mapping.

    On a name clash the ``devDependencies`` entry wins. Missing sections are
    treated as empty.
    """
    if not isinstance(package_json, Mapping):
        raise ManifestError("package.json must be a JSON object")

    merged: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        deps = package_json.get(section) or {}
        if not isinstance(deps, Mapping):
            raise ManifestError(f"'{section}' must be an object")
        for name, declared in deps.items():
            merged[str(name)] = str(declared)
    return merged


def dev_dependency_names(package_json: Mapping[str, Any]) -> set[str]:
    deps = package_json.get("devDependencies") or {}
    return set(deps) if isinstance(deps, Mapping) else set()
