"""Offline scan — a small table of commonly outdated releases, no network access."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from packsafe.client.report import ScanReport
from packsafe.engines.dependency_analyzer.manifest import dev_dependency_names, merge_dependencies
from packsafe.engines.dependency_analyzer.versions import clean_version

log = structlog.get_logger("packsafe.client")

# name -> (outdated release, its replacement)
KNOWN_OUTDATED: Mapping[str, tuple[str, str]] = {
    "axios": ("1.3.0", "1.6.7"),
    "lodash": ("4.17.20", "4.17.21"),
    "express": ("4.17.1", "4.18.2"),
    "moment": ("2.29.1", "2.30.1"),
    "react": ("17.0.2", "18.2.0"),
    "uuid": ("8.3.2", "9.0.0"),
    "typescript": ("4.5.5", "5.3.3"),
}

OFFLINE_MESSAGE = "Offline scan: vulnerability data is unavailable"


def scan_locally(
    package_json: dict[str, Any],
    *,
    project_name: str,
    file_path: str,
    known_outdated: Mapping[str, tuple[str, str]] = KNOWN_OUTDATED,
) -> ScanReport:
    """Flag exact matches against *known_outdated*.

    Runtime dependencies get severity ``medium``, dev dependencies ``low``.
    Vulnerabilities are never reported offline.
    """
    dev_names = dev_dependency_names(package_json)
    dependencies = merge_dependencies(package_json)

    outdated: dict[str, dict[str, Any]] = {}
    for name, declared in dependencies.items():
        entry = known_outdated.get(name)
        version = clean_version(declared)
        if entry is None or version != entry[0]:
            continue
        outdated[name] = {
            "current": version,
            "latest": entry[1],
            "severity": "low" if name in dev_names else "medium",
        }

    log.info("local_scan.done", project=project_name, total=len(dependencies), outdated=len(outdated))
    return ScanReport(
        project_name=project_name,
        file_path=file_path,
        total=len(dependencies),
        outdated=outdated,
        offline=True,
        message=OFFLINE_MESSAGE,
    )
