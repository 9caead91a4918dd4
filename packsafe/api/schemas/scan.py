"""Scan request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScanPackageJsonRequest(BaseModel):
    package_json: dict[str, Any] = Field(alias="packageJson")
    project_name: str | None = Field(None, alias="projectName")
    file_path: str | None = Field(None, alias="filePath")

    model_config = ConfigDict(populate_by_name=True)


class ScanSummary(BaseModel):
    total: int
    outdated: int
    vulnerable: int


class VulnerabilityInfo(BaseModel):
    id: str
    severity: str
    description: str
    references: list[str] = []


class OutdatedEntry(BaseModel):
    current: str
    latest: str | None
    severity: str | None


class VulnerableEntry(BaseModel):
    current: str
    vulnerability: VulnerabilityInfo


class DependencyDetails(BaseModel):
    outdated: dict[str, OutdatedEntry]
    vulnerable: dict[str, VulnerableEntry]


class ScanDetails(BaseModel):
    project_name: str
    file_path: str
    scan_date: datetime
    dependencies: DependencyDetails


class ScanWarnings(BaseModel):
    rate_limited: bool = False


class ScanResponse(BaseModel):
    success: bool = True
    scan_id: uuid.UUID
    summary: ScanSummary
    details: ScanDetails
    warnings: ScanWarnings | None = None


class ScanHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_name: str
    file_path: str
    summary: ScanSummary
    rate_limited: bool
    scan_date: datetime


class ScanResultDetail(ScanHistoryItem):
    dependencies: DependencyDetails
    package_json: dict[str, Any]


class ScanHistoryMeta(BaseModel):
    next_cursor: str | None
    has_more: bool
    total: int


class ScanHistoryPage(BaseModel):
    """``GET /api/scan/history`` body; pass ``meta.next_cursor`` back as ``cursor``."""

    data: list[ScanHistoryItem]
    meta: ScanHistoryMeta
