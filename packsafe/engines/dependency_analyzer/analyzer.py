"""DependencyAnalyzer — batched outdated + vulnerability analysis of a manifest."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import structlog

from packsafe.engines.dependency_analyzer.advisory_client import AdvisoryLookup
from packsafe.engines.dependency_analyzer.known_vulns import (
    KNOWN_VULNERABILITIES,
    KnownVulnerabilities,
)
from packsafe.engines.dependency_analyzer.models import (
    AnalysisResult,
    ResolvedDependency,
    Vulnerability,
)
from packsafe.engines.dependency_analyzer.versions import (
    clean_version,
    is_outdated,
    update_severity,
)

log = structlog.get_logger("packsafe.engine")

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.5  # seconds


class VersionSource(Protocol):
    async def get_latest_version(self, name: str) -> str | None: ...


class AdvisorySource(Protocol):
    async def lookup(self, package: str) -> AdvisoryLookup: ...


@dataclass
class _ScanState:
    """Per-call mutable state; one analyzer may serve concurrent scans."""

    rate_limited: bool = False
    advisory_calls: int = 0


class DependencyAnalyzer:
    """Resolve latest versions and known vulnerabilities for a dependency map.

    Packages are processed in fixed-size batches: the members of one batch
    run concurrently, batches run one after another with *batch_delay*
    seconds in between. Once the advisory source reports an exhausted
    quota, no further advisory lookups are issued for the rest of that
    ``analyze()`` call; the static table is still consulted.
    """

    def __init__(
        self,
        registry: VersionSource,
        advisories: AdvisorySource,
        *,
        known_vulnerabilities: KnownVulnerabilities = KNOWN_VULNERABILITIES,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._registry = registry
        self._advisories = advisories
        self._known = known_vulnerabilities
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    @classmethod
    def from_env(
        cls, registry: VersionSource, advisories: AdvisorySource
    ) -> DependencyAnalyzer:
        return cls(
            registry,
            advisories,
            batch_size=int(os.environ.get("PACKSAFE_SCAN_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
            batch_delay=float(os.environ.get("PACKSAFE_SCAN_BATCH_DELAY", DEFAULT_BATCH_DELAY)),
        )

    async def analyze(self, dependencies: Mapping[str, str]) -> AnalysisResult:
        """Analyze every ``name -> declared range`` entry of *dependencies*."""
        items = list(dependencies.items())
        state = _ScanState()
        resolved: list[ResolvedDependency] = []

        for start in range(0, len(items), self.batch_size):
            batch = items[start : start + self.batch_size]
            resolved.extend(
                await asyncio.gather(
                    *(self._resolve(name, declared, state) for name, declared in batch)
                )
            )
            more_batches = start + self.batch_size < len(items)
            if more_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        result = AnalysisResult(dependencies=resolved, rate_limited=state.rate_limited)
        log.info(
            "analyzer.done",
            **result.summary,
            rate_limited=state.rate_limited,
            advisory_calls=state.advisory_calls,
        )
        return result

    # ── per package ──────────────────────────────────────────────────────

    async def _resolve(self, name: str, declared: str, state: _ScanState) -> ResolvedDependency:
        version = clean_version(declared)
        dep = ResolvedDependency(name=name, declared_range=declared, cleaned_version=version)

        dep.latest_version = await self._registry.get_latest_version(name)
        if dep.latest_version is None:
            log.debug("analyzer.no_latest", package=name)
        elif is_outdated(version, dep.latest_version):
            dep.is_outdated = True
            dep.update_severity = update_severity(version, dep.latest_version)

        dep.vulnerability = await self._check_vulnerability(name, version, state)
        return dep

    async def _check_vulnerability(
        self, name: str, version: str, state: _ScanState
    ) -> Vulnerability | None:
        known = self._known.get((name, version))
        if known is not None:
            return known
        if state.rate_limited:
            return None

        state.advisory_calls += 1
        lookup = await self._advisories.lookup(name)
        if lookup.rate_limited:
            if not state.rate_limited:
                log.warning("analyzer.rate_limited", package=name)
            state.rate_limited = True
            return None

        for advisory in lookup.advisories:
            if advisory.affects(name, version):
                return advisory.to_vulnerability()
        return None
