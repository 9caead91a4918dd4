"""ScanOrchestrator — find manifests in a workspace and scan them one by one."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from packsafe.client import BackendError, ConfigurationError, ScanCancelled
from packsafe.client.api_client import PackSafeClient
from packsafe.client.config import ClientConfig
from packsafe.client.local_scanner import scan_locally
from packsafe.client.report import ScanReport
from packsafe.client.workspace import find_manifests, load_manifest, project_name_for
from packsafe.engines.dependency_analyzer.manifest import ManifestError

log = structlog.get_logger("packsafe.client")

SelectFn = Callable[[list[Path]], Path | None]


class ScanMode(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ManifestScan:
    manifest: Path
    package_json: dict[str, Any]
    report: ScanReport


class ScanOrchestrator:
    """Scan every (or one selected) manifest in *workspace*.

    Online mode posts each manifest to the backend; offline mode uses the
    local known-outdated table. With ``offline_fallback`` a rate-limited
    online result is re-run offline and flagged ``rate_limited``.
    """

    def __init__(
        self,
        workspace: Path | None,
        *,
        config: ClientConfig | None = None,
        mode: ScanMode = ScanMode.ONLINE,
        offline_fallback: bool = False,
        client_factory: Callable[[ClientConfig], PackSafeClient] = PackSafeClient,
    ) -> None:
        self.workspace = workspace
        self.config = config or ClientConfig.from_env()
        self.mode = mode
        self.offline_fallback = offline_fallback
        self._client_factory = client_factory

    async def scan(
        self,
        *,
        select: SelectFn | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[ManifestScan]:
        """Scan manifests sequentially.

        *select* receives all discovered manifests and returns the one to
        scan, or None to scan them all. *cancel* is checked before each
        file; once set, :class:`ScanCancelled` is raised.
        """
        workspace = self.workspace
        if workspace is None:
            raise ConfigurationError("No workspace folder is open")
        manifests = find_manifests(workspace)
        if select is not None and len(manifests) > 1:
            chosen = select(manifests)
            if chosen is not None:
                manifests = [chosen]

        client = self._client_factory(self.config) if self.mode is ScanMode.ONLINE else None
        results: list[ManifestScan] = []
        try:
            for manifest in manifests:
                if cancel is not None and cancel.is_set():
                    log.info("scan.cancelled", done=len(results), remaining=len(manifests) - len(results))
                    raise ScanCancelled(f"scan cancelled after {len(results)} file(s)")
                results.append(await self._scan_one(workspace, manifest, client))
        finally:
            if client is not None:
                await client.close()
        return results

    async def _scan_one(
        self, workspace: Path, manifest: Path, client: PackSafeClient | None
    ) -> ManifestScan:
        package_json = load_manifest(manifest)
        project_name = project_name_for(workspace, manifest)
        file_path = manifest.relative_to(workspace).as_posix()

        if client is None:
            report = self._offline(package_json, project_name, file_path)
            return ManifestScan(manifest, package_json, report)

        try:
            report = await client.scan_package_json(
                package_json, project_name=project_name, file_path=file_path
            )
        except BackendError as exc:
            if not (exc.rate_limited and self.offline_fallback):
                raise
            log.warning("scan.backend_rate_limited", project=project_name)
            report = self._offline(package_json, project_name, file_path)
            report.rate_limited = True
            return ManifestScan(manifest, package_json, report)

        if report.rate_limited and self.offline_fallback:
            log.warning("scan.rerun_offline", project=project_name)
            report = self._offline(package_json, project_name, file_path)
            report.rate_limited = True
        log.info(
            "scan.done",
            project=project_name,
            total=report.total,
            outdated=report.outdated_count,
            vulnerable=report.vulnerable_count,
            rate_limited=report.rate_limited,
        )
        return ManifestScan(manifest, package_json, report)

    @staticmethod
    def _offline(package_json: dict[str, Any], project_name: str, file_path: str) -> ScanReport:
        try:
            return scan_locally(package_json, project_name=project_name, file_path=file_path)
        except ManifestError as exc:
            raise ConfigurationError(f"{file_path}: {exc}") from exc
