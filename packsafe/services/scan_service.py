"""ScanService — analyze a manifest, persist the snapshot, refresh the project rollup."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.core.database import utcnow
from packsafe.dao.project_dao import ProjectDAO
from packsafe.dao.scan_result_dao import ScanResultDAO
from packsafe.engines.dependency_analyzer import (
    AnalysisResult,
    DependencyAnalyzer,
    ManifestError,
    merge_dependencies,
)
from packsafe.models.project import Project
from packsafe.models.scan_result import ScanResult
from packsafe.services import ConflictError, NotFoundError, ValidationError

log = structlog.get_logger("packsafe.scan")

DEFAULT_PROJECT_NAME = "Unknown Project"
DEFAULT_FILE_PATH = "package.json"


@dataclass
class ScanOutcome:
    """What one scan produced: the stored record plus the refreshed project."""

    scan: ScanResult
    project: Project
    analysis: AnalysisResult

    @property
    def rate_limited(self) -> bool:
        return self.analysis.rate_limited


class ScanService:
    """Runs the dependency analyzer and records its output.

    Scan results are append-only; each call inserts exactly one row and
    overwrites the owning project's rollup counters with the new summary.
    """

    def __init__(
        self,
        scan_result_dao: ScanResultDAO,
        project_dao: ProjectDAO,
        analyzer: DependencyAnalyzer,
    ) -> None:
        self._scan_dao = scan_result_dao
        self._project_dao = project_dao
        self._analyzer = analyzer

    async def scan_package_json(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        package_json: Any,
        *,
        project_name: str | None = None,
        file_path: str | None = None,
    ) -> ScanOutcome:
        """Analyze *package_json* and persist the result for *user_id*.

        Raises :class:`ValidationError` if the manifest is malformed.
        """
        try:
            dependencies = merge_dependencies(package_json)
        except ManifestError as exc:
            raise ValidationError(str(exc)) from exc

        project_name = (project_name or "").strip() or DEFAULT_PROJECT_NAME
        file_path = file_path or DEFAULT_FILE_PATH
        log.info("scan.started", project=project_name, dependencies=len(dependencies))

        # The request transaction stays open during analysis; nothing is
        # written to it until the analyzer returns.
        analysis = await self._analyzer.analyze(dependencies)
        summary = analysis.summary
        scanned_at = utcnow()

        scan = await self._scan_dao.create(
            session,
            user_id=user_id,
            project_name=project_name,
            file_path=file_path,
            package_json=dict(package_json),
            summary=summary,
            dependencies={"outdated": analysis.outdated, "vulnerable": analysis.vulnerable},
            rate_limited=analysis.rate_limited,
            scan_date=scanned_at,
        )
        try:
            project = await self._project_dao.upsert_rollup(
                session,
                user_id=user_id,
                name=project_name,
                path=file_path,
                package_count=summary["total"],
                outdated_count=summary["outdated"],
                vulnerability_count=summary["vulnerable"],
                scanned_at=scanned_at,
            )
        except IntegrityError as exc:
            raise ConflictError("project is being scanned concurrently, retry") from exc

        log.info(
            "scan.completed",
            scan_id=str(scan.id),
            project=project_name,
            rate_limited=analysis.rate_limited,
            **summary,
        )
        return ScanOutcome(scan=scan, project=project, analysis=analysis)

    # ── history ───────────────────────────────────────────────────────────

    async def history(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        *,
        project_name: str | None = None,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> dict:
        """Paginated scan history for *user_id*, newest first."""
        page = await self._scan_dao.list_by_user(
            session, user_id, project_name=project_name, cursor=cursor, page_size=page_size
        )
        total = await self._scan_dao.count_by_user(session, user_id, project_name)
        return {
            "data": page.data,
            "next_cursor": page.next_cursor,
            "has_more": page.has_more,
            "total": total,
        }

    async def get(self, session: AsyncSession, user_id: uuid.UUID, scan_id: uuid.UUID) -> ScanResult:
        scan = await self._scan_dao.get_owned(session, scan_id, user_id)
        if scan is None:
            raise NotFoundError("scan result not found")
        return scan

    async def delete(self, session: AsyncSession, user_id: uuid.UUID, scan_id: uuid.UUID) -> None:
        scan = await self.get(session, user_id, scan_id)
        await self._scan_dao.delete(session, scan)
