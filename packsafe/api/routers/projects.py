"""Projects router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.api.deps import get_current_user, get_project_service, get_session
from packsafe.api.schemas.project import (
    CreateProjectRequest,
    ProjectResponse,
    ProjectStatusResponse,
    UpdateProjectRequest,
)
from packsafe.models.user import User
from packsafe.services.project_service import ProjectService

router = APIRouter()


@router.get("/", response_model=list[ProjectResponse])
async def list_projects(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> list[ProjectResponse]:
    return [ProjectResponse.model_validate(p) for p in await svc.list(session, user.id)]


@router.post("/", response_model=ProjectResponse, status_code=201)
async def create_project(
    body: CreateProjectRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    project = await svc.create(
        session,
        user.id,
        name=body.name,
        path=body.path,
        framework=body.framework,
        node_version=body.node_version,
    )
    return ProjectResponse.model_validate(project)


@router.get("/{name:path}/status", response_model=ProjectStatusResponse)
async def project_status(
    name: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> ProjectStatusResponse:
    return ProjectStatusResponse(**await svc.status(session, user.id, name))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return ProjectResponse.model_validate(await svc.get(session, user.id, project_id))


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: uuid.UUID,
    body: UpdateProjectRequest,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    project = await svc.update(
        session,
        user.id,
        project_id,
        fields_set=body.model_fields_set,
        **body.model_dump(include=body.model_fields_set),
    )
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: ProjectService = Depends(get_project_service),
) -> None:
    await svc.delete(session, user.id, project_id)
