"""Data models for the dependency analyzer engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

UpdateSeverity = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class Vulnerability:
    """A single advisory matched against a declared version."""

    id: str
    severity: str
    description: str
    references: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity,
            "description": self.description,
            "references": list(self.references),
        }


@dataclass
class ResolvedDependency:
    """One declared dependency after version lookup and vulnerability check.

    This is a pure data structure — no DB dependencies.
    """

    name: str
    declared_range: str
    cleaned_version: str
    latest_version: str | None = None
    is_outdated: bool = False
    update_severity: UpdateSeverity | None = None
    vulnerability: Vulnerability | None = None

    @property
    def is_vulnerable(self) -> bool:
        return self.vulnerability is not None


@dataclass
class AnalysisResult:
    """Aggregate of a single analyze() run."""

    dependencies: list[ResolvedDependency] = field(default_factory=list)
    rate_limited: bool = False

    @property
    def total(self) -> int:
        return len(self.dependencies)

    @property
    def outdated(self) -> dict[str, dict[str, Any]]:
        """``{name: {current, latest, severity}}`` for every outdated package."""
        return {
            d.name: {
                "current": d.cleaned_version,
                "latest": d.latest_version,
                "severity": d.update_severity,
            }
            for d in self.dependencies
            if d.is_outdated
        }

    @property
    def vulnerable(self) -> dict[str, dict[str, Any]]:
        """``{name: {current, vulnerability}}`` for every vulnerable package."""
        return {
            d.name: {"current": d.cleaned_version, "vulnerability": d.vulnerability.to_dict()}
            for d in self.dependencies
            if d.vulnerability is not None
        }

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "outdated": sum(1 for d in self.dependencies if d.is_outdated),
            "vulnerable": sum(1 for d in self.dependencies if d.is_vulnerable),
        }
