"""ScanResultDAO — scan_results table operations.

Scan results are append-only: there is deliberately no update method.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.dao.base import BaseDAO, Page
from packsafe.models.scan_result import ScanResult


class ScanResultDAO(BaseDAO[ScanResult]):
    model = ScanResult
    cursor_column = "scan_date"

    async def list_by_user(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        *,
        project_name: str | None = None,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> Page[ScanResult]:
        """Paginated scan history, newest first."""
        query = select(ScanResult).where(*self._scope(user_id, project_name))
        return await self.paginate(session, query, cursor=cursor, page_size=page_size)

    async def count_by_user(
        self, session: AsyncSession, user_id: uuid.UUID, project_name: str | None = None
    ) -> int:
        return await self.count(session, *self._scope(user_id, project_name))

    async def list_summaries(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> list[tuple[str, datetime, dict]]:
        """``(project_name, scan_date, summary)`` for every scan, newest first."""
        stmt = (
            select(ScanResult.project_name, ScanResult.scan_date, ScanResult.summary)
            .where(ScanResult.user_id == user_id)
            .order_by(ScanResult.scan_date.desc())
        )
        result = await session.execute(stmt)
        return [(row.project_name, row.scan_date, row.summary) for row in result]

    @staticmethod
    def _scope(user_id: uuid.UUID, project_name: str | None) -> list:
        criteria = [ScanResult.user_id == user_id]
        if project_name is not None:
            criteria.append(ScanResult.project_name == project_name)
        return criteria
