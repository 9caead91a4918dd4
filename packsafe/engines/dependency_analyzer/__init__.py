"""Dependency analyzer engine — outdated and vulnerable npm package detection."""

from packsafe.engines.dependency_analyzer.analyzer import DependencyAnalyzer
from packsafe.engines.dependency_analyzer.manifest import ManifestError, merge_dependencies
from packsafe.engines.dependency_analyzer.models import (
    AnalysisResult,
    ResolvedDependency,
    Vulnerability,
)

__all__ = [
    "AnalysisResult",
    "DependencyAnalyzer",
    "ManifestError",
    "ResolvedDependency",
    "Vulnerability",
    "merge_dependencies",
]
