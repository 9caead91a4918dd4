"""ProjectDAO — projects table operations."""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.dao.base import BaseDAO
from packsafe.models.project import Project


class ProjectDAO(BaseDAO[Project]):
    model = Project

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_name(
        self, session: AsyncSession, user_id: uuid.UUID, name: str
    ) -> Project | None:
        """Return the user's project called *name* (unique per user)."""
        stmt = select(Project).where(Project.user_id == user_id, Project.name == name)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> list[Project]:
        """All projects owned by *user_id*, most recently updated first."""
        stmt = (
            select(Project)
            .where(Project.user_id == user_id)
            .order_by(Project.updated_at.desc(), Project.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert_rollup(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        name: str,
        path: str,
        package_count: int,
        outdated_count: int,
        vulnerability_count: int,
        scanned_at: datetime,
    ) -> Project:
        """Overwrite the project's rollup counters, creating the row if missing.

        The ``(user_id, name)`` unique constraint rejects a concurrent
        duplicate insert with ``IntegrityError``.
        """
        values = {
            "path": path,
            "package_count": package_count,
            "outdated_count": outdated_count,
            "vulnerability_count": vulnerability_count,
            "last_scanned": scanned_at,
        }
        project = await self.get_by_name(session, user_id, name)
        if project is None:
            return await self.create(session, user_id=user_id, name=name, **values)
        return await self.update(session, project, **values)
