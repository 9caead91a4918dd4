"""Scan router — analyze a package.json and browse scan history."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.api.deps import get_current_user, get_scan_service, get_session
from packsafe.api.schemas.scan import (
    DependencyDetails,
    ScanDetails,
    ScanHistoryItem,
    ScanHistoryMeta,
    ScanHistoryPage,
    ScanPackageJsonRequest,
    ScanResponse,
    ScanResultDetail,
    ScanSummary,
    ScanWarnings,
)
from packsafe.models.user import User
from packsafe.services.scan_service import ScanService

router = APIRouter()


@router.post("/package-json", response_model=ScanResponse, response_model_exclude_none=True)
async def scan_package_json(
    body: ScanPackageJsonRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ScanService = Depends(get_scan_service),
) -> ScanResponse:
    outcome = await svc.scan_package_json(
        session,
        user.id,
        body.package_json,
        project_name=body.project_name,
        file_path=body.file_path,
    )
    scan = outcome.scan
    return ScanResponse(
        scan_id=scan.id,
        summary=ScanSummary(**scan.summary),
        details=ScanDetails(
            project_name=scan.project_name,
            file_path=scan.file_path,
            scan_date=scan.scan_date,
            dependencies=DependencyDetails(**scan.dependencies),
        ),
        warnings=ScanWarnings(rate_limited=True) if outcome.rate_limited else None,
    )


@router.get("/history", response_model=ScanHistoryPage)
async def scan_history(
    project_name: str | None = Query(None),
    cursor: str | None = Query(None),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ScanService = Depends(get_scan_service),
) -> ScanHistoryPage:
    result = await svc.history(
        session, user.id, project_name=project_name, cursor=cursor, page_size=page_size
    )
    return ScanHistoryPage(
        data=[ScanHistoryItem.model_validate(s) for s in result["data"]],
        meta=ScanHistoryMeta(
            next_cursor=result["next_cursor"],
            has_more=result["has_more"],
            total=result["total"],
        ),
    )


@router.get("/{scan_id}", response_model=ScanResultDetail)
async def get_scan(
    scan_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ScanService = Depends(get_scan_service),
) -> ScanResultDetail:
    return ScanResultDetail.model_validate(await svc.get(session, user.id, scan_id))


@router.delete("/{scan_id}", status_code=204)
async def delete_scan(
    scan_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ScanService = Depends(get_scan_service),
) -> None:
    await svc.delete(session, user.id, scan_id)
