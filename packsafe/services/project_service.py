"""ProjectService — per-user project CRUD and scan rollup status."""

from __future__ import annotations

import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.dao.project_dao import ProjectDAO
from packsafe.models.project import Project
from packsafe.services import ConflictError, NotFoundError, ValidationError

_DUPLICATE_NAME = "a project with this name already exists"
_UPDATABLE = ("name", "path", "framework", "node_version")


class ProjectService:
    """Stateless service for project CRUD. Every call is scoped to one owner."""

    def __init__(self, project_dao: ProjectDAO) -> None:
        self._project_dao = project_dao

    async def list(self, session: AsyncSession, user_id: uuid.UUID) -> list[Project]:
        return await self._project_dao.list_by_user(session, user_id)

    async def get(self, session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID) -> Project:
        """Return the project if it exists and belongs to *user_id*.

        Raises :class:`NotFoundError` otherwise, so other users' projects
        are indistinguishable from missing ones.
        """
        project = await self._project_dao.get_owned(session, project_id, user_id)
        if project is None:
            raise NotFoundError("project not found")
        return project

    async def create(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        *,
        name: str,
        path: str,
        framework: str | None = None,
        node_version: str | None = None,
    ) -> Project:
        """Create a project. Raises :class:`ConflictError` on a duplicate name."""
        name = name.strip()
        if not name:
            raise ValidationError("project name must not be empty")
        if await self._project_dao.get_by_name(session, user_id, name) is not None:
            raise ConflictError(_DUPLICATE_NAME)
        try:
            return await self._project_dao.create(
                session,
                user_id=user_id,
                name=name,
                path=path,
                framework=framework,
                node_version=node_version,
            )
        except IntegrityError as exc:
            raise ConflictError(_DUPLICATE_NAME) from exc

    async def update(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        *,
        fields_set: set[str],
        **values: str | None,
    ) -> Project:
        """Apply the fields the client actually sent (``fields_set``)."""
        project = await self.get(session, user_id, project_id)
        updates = {k: values[k] for k in _UPDATABLE if k in fields_set and k in values}

        if "name" in updates:
            new_name = (updates["name"] or "").strip()
            if not new_name:
                raise ValidationError("project name must not be empty")
            if new_name != project.name:
                clash = await self._project_dao.get_by_name(session, user_id, new_name)
                if clash is not None:
                    raise ConflictError(_DUPLICATE_NAME)
            updates["name"] = new_name
        if "path" in updates and not updates["path"]:
            raise ValidationError("project path must not be empty")

        if not updates:
            return project
        return await self._project_dao.update(session, project, **updates)

    async def delete(
        self, session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID
    ) -> None:
        project = await self.get(session, user_id, project_id)
        await self._project_dao.delete(session, project)

    async def status(self, session: AsyncSession, user_id: uuid.UUID, name: str) -> dict[str, int]:
        """``{outdated, vulnerable}`` from the latest scan rollup; zeros if unknown."""
        project = await self._project_dao.get_by_name(session, user_id, name)
        if project is None:
            return {"outdated": 0, "vulnerable": 0}
        return {"outdated": project.outdated_count, "vulnerable": project.vulnerability_count}
