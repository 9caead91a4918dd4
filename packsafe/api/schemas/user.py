"""User stats schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RecentProject(BaseModel):
    name: str
    last_scan: datetime
    dependency_count: int


class UserStatsResponse(BaseModel):
    projects_scanned: int
    total_dependencies: int
    scan_count: int
    active_projects: int
    recent_projects: list[RecentProject]
