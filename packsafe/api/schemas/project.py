"""Project request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class CreateProjectRequest(BaseModel):
    name: str
    path: str
    framework: str | None = None
    node_version: str | None = None

    @field_validator("name", "path", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class UpdateProjectRequest(BaseModel):
    name: str | None = None
    path: str | None = None
    framework: str | None = None
    node_version: str | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    path: str
    framework: str | None
    node_version: str | None
    package_count: int
    outdated_count: int
    vulnerability_count: int
    last_scanned: datetime | None
    created_at: datetime
    updated_at: datetime


class ProjectStatusResponse(BaseModel):
    outdated: int
    vulnerable: int
