"""Workspace discovery — locate package.json manifests and name projects."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from packsafe.client import ConfigurationError

MANIFEST_NAME = "package.json"

EXCLUDED_DIRS = frozenset(
    {
        "node_modules",
        "bower_components",
        "jspm_packages",
        "web_modules",
        "dist",
        "build",
        "coverage",
        ".git",
    }
)


def find_manifests(workspace: Path | None) -> list[Path]:
    """Return every ``package.json`` under *workspace*, sorted, skipping vendored dirs.

    Raises :class:`ConfigurationError` if there is no workspace or no manifest.
    """
    if workspace is None or not workspace.is_dir():
        raise ConfigurationError("No workspace folder is open")

    found: list[Path] = []
    for root, dirs, files in os.walk(workspace):
        # prune in place so os.walk never descends into excluded trees
        dirs[:] = sorted(d for d in dirs if d not in EXCLUDED_DIRS)
        if MANIFEST_NAME in files:
            found.append(Path(root) / MANIFEST_NAME)

    if not found:
        raise ConfigurationError("No package.json files found in workspace")
    return sorted(found)


def project_name_for(workspace: Path, manifest: Path) -> str:
    """``<workspace>`` for the root manifest, ``<workspace>/<subdir>`` for nested ones."""
    rel_dir = manifest.parent.resolve().relative_to(workspace.resolve())
    if rel_dir == Path("."):
        return workspace.resolve().name
    return f"{workspace.resolve().name}/{rel_dir.as_posix()}"


def load_manifest(manifest: Path) -> dict[str, Any]:
    """Parse *manifest*; raises :class:`ConfigurationError` on unreadable JSON."""
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read {manifest}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{manifest} is not a JSON object")
    return data
