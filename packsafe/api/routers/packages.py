"""Packages router — npm registry search and package details."""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from packsafe.api.deps import get_current_user, get_search_service
from packsafe.api.schemas.package import PackageInfo, PackageSearchResponse
from packsafe.engines.package_search import NpmSearchService
from packsafe.models.user import User
from packsafe.services import NotFoundError

router = APIRouter()

_log = structlog.get_logger("packsafe.api")


@router.get("/search", response_model=PackageSearchResponse)
async def search_packages(
    q: str = Query("", max_length=214),
    size: int = Query(20, ge=1, le=250),
    offset: int = Query(0, ge=0),
    _user: User = Depends(get_current_user),
    svc: NpmSearchService = Depends(get_search_service),
) -> PackageSearchResponse:
    try:
        result = await svc.search(q, size=size, offset=offset)
    except httpx.HTTPError as exc:
        _log.warning("search.upstream_failed", query=q, error=str(exc))
        raise HTTPException(status_code=502, detail="npm registry search failed")
    return PackageSearchResponse(
        packages=[PackageInfo.model_validate(p) for p in result.packages],
        total=result.total,
        has_more=result.has_more,
    )


@router.get("/{name:path}", response_model=PackageInfo)
async def package_details(
    name: str,
    _user: User = Depends(get_current_user),
    svc: NpmSearchService = Depends(get_search_service),
) -> PackageInfo:
    pkg = await svc.get_details(name)
    if pkg is None:
        raise NotFoundError(f"package not found: {name}")
    return PackageInfo.model_validate(pkg)
