"""Scan reports and per-dependency status rows.

A :class:`ScanReport` is what the client gets back from either scan mode.
:func:`build_rows` turns it into one row per declared dependency, each row
one of three variants (:class:`OkRow`, :class:`OutdatedRow`,
:class:`VulnerableRow`); :func:`render_row` handles every variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import click

from packsafe.engines.dependency_analyzer.manifest import dev_dependency_names, merge_dependencies
from packsafe.engines.dependency_analyzer.versions import clean_version


@dataclass
class ScanReport:
    project_name: str
    file_path: str
    total: int
    outdated: dict[str, dict[str, Any]] = field(default_factory=dict)
    vulnerable: dict[str, dict[str, Any]] = field(default_factory=dict)
    rate_limited: bool = False
    offline: bool = False
    scan_id: str | None = None
    message: str | None = None

    @property
    def outdated_count(self) -> int:
        return len(self.outdated)

    @property
    def vulnerable_count(self) -> int:
        return len(self.vulnerable)

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> ScanReport:
        """Build from a ``POST /api/scan/package-json`` response body."""
        details = payload.get("details") or {}
        deps = details.get("dependencies") or {}
        return cls(
            project_name=details.get("project_name", ""),
            file_path=details.get("file_path", ""),
            total=int((payload.get("summary") or {}).get("total", 0)),
            outdated=deps.get("outdated") or {},
            vulnerable=deps.get("vulnerable") or {},
            rate_limited=bool((payload.get("warnings") or {}).get("rate_limited")),
            scan_id=payload.get("scan_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_name": self.project_name,
            "file_path": self.file_path,
            "summary": {
                "total": self.total,
                "outdated": self.outdated_count,
                "vulnerable": self.vulnerable_count,
            },
            "dependencies": {"outdated": self.outdated, "vulnerable": self.vulnerable},
            "rate_limited": self.rate_limited,
            "offline": self.offline,
            "scan_id": self.scan_id,
            "message": self.message,
        }


# ── rows ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OkRow:
    name: str
    version: str
    dev: bool


@dataclass(frozen=True)
class OutdatedRow:
    name: str
    version: str
    dev: bool
    latest: str
    severity: str


@dataclass(frozen=True)
class VulnerableRow:
    name: str
    version: str
    dev: bool
    vulnerability_id: str
    severity: str
    description: str
    latest: str | None = None


DependencyRow = Union[OkRow, OutdatedRow, VulnerableRow]


def build_rows(package_json: dict[str, Any], report: ScanReport) -> list[DependencyRow]:
    """One row per declared dependency; vulnerable beats outdated beats ok."""
    dev_names = dev_dependency_names(package_json)
    rows: list[DependencyRow] = []
    for name, declared in sorted(merge_dependencies(package_json).items()):
        version = clean_version(declared)
        dev = name in dev_names
        outdated = report.outdated.get(name)
        vulnerable = report.vulnerable.get(name)
        if vulnerable is not None:
            vuln = vulnerable.get("vulnerability") or {}
            rows.append(
                VulnerableRow(
                    name=name,
                    version=version,
                    dev=dev,
                    vulnerability_id=vuln.get("id", "unknown"),
                    severity=vuln.get("severity", "medium"),
                    description=vuln.get("description", ""),
                    latest=outdated.get("latest") if outdated else None,
                )
            )
        elif outdated is not None:
            rows.append(
                OutdatedRow(
                    name=name,
                    version=version,
                    dev=dev,
                    latest=str(outdated.get("latest")),
                    severity=str(outdated.get("severity") or "low"),
                )
            )
        else:
            rows.append(OkRow(name=name, version=version, dev=dev))
    return rows


_SEVERITY_COLOURS = {"critical": "red", "high": "red", "medium": "yellow", "low": "cyan"}


def render_row(row: DependencyRow) -> str:
    """One styled terminal line for *row*."""
    label = f"{row.name}@{row.version}" + (" (dev)" if row.dev else "")
    if isinstance(row, VulnerableRow):
        upgrade = f", upgrade to {row.latest}" if row.latest else ""
        return click.style(
            f"  ✗ {label}  {row.vulnerability_id} [{row.severity}] {row.description}{upgrade}",
            fg="red",
        )
    if isinstance(row, OutdatedRow):
        return click.style(
            f"  ↑ {label}  → {row.latest} [{row.severity}]",
            fg=_SEVERITY_COLOURS.get(row.severity, "yellow"),
        )
    if isinstance(row, OkRow):
        return click.style(f"  ✓ {label}", fg="green")
    raise TypeError(f"unknown dependency row: {row!r}")


def notification_for(report: ScanReport) -> tuple[str, str]:
    """``(level, message)`` summarising *report*: error, warning or info."""
    if report.vulnerable_count > 0:
        return "error", (
            f"{report.vulnerable_count} vulnerable package(s) found in {report.project_name}"
        )
    if report.outdated_count > 2:
        return "warning", (
            f"{report.outdated_count} outdated package(s) found in {report.project_name}"
        )
    return "info", f"{report.project_name}: {report.total} dependencies scanned"
