"""Generic base DAO — owner-scoped CRUD + keyset pagination.

Every PackSafe row that a request can reach belongs to a user, so the base
class offers :meth:`BaseDAO.get_owned` next to the plain primary-key
lookups. History listings page on ``(<cursor_column>, id)`` descending;
cursors are signed so a client cannot forge a position.
"""

import base64
import hashlib
import hmac
import json
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, func, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

_CURSOR_SECRET = os.environ.get("PACKSAFE_CURSOR_SECRET", "packsafe-dev-cursor-secret").encode()


class InvalidCursorError(ValueError):
    """A history cursor was malformed, tampered with, or built for another listing."""


@dataclass
class Page(Generic[ModelT]):
    data: list[ModelT]
    next_cursor: str | None
    has_more: bool


def _signature(body: bytes) -> str:
    return hmac.new(_CURSOR_SECRET, body, hashlib.sha256).hexdigest()[:20]


def encode_cursor(key: str, position: datetime, row_id: uuid.UUID) -> str:
    """Sign ``(key, position, row_id)`` into a URL-safe token.

    *key* names the sort column so a cursor from one listing is rejected by
    another.
    """
    if position.tzinfo is None:
        position = position.replace(tzinfo=timezone.utc)
    body = json.dumps([key, position.isoformat(), str(row_id)], separators=(",", ":")).encode()
    token = body + b"." + _signature(body).encode()
    return base64.urlsafe_b64encode(token).decode().rstrip("=")


def decode_cursor(cursor: str, key: str) -> tuple[datetime, uuid.UUID]:
    """Inverse of :func:`encode_cursor`; raises :class:`InvalidCursorError`."""
    try:
        token = base64.urlsafe_b64decode(cursor + "=" * (-len(cursor) % 4))
        body, sig = token.rsplit(b".", 1)
        if not hmac.compare_digest(sig.decode(), _signature(body)):
            raise InvalidCursorError("cursor signature mismatch")
        cursor_key, position, row_id = json.loads(body)
    except InvalidCursorError:
        raise
    except (ValueError, TypeError, UnicodeDecodeError) as exc:
        raise InvalidCursorError("malformed cursor") from exc
    if cursor_key != key:
        raise InvalidCursorError("cursor belongs to a different listing")
    try:
        return datetime.fromisoformat(position), uuid.UUID(row_id)
    except (ValueError, TypeError) as exc:
        raise InvalidCursorError("malformed cursor") from exc


class BaseDAO(Generic[ModelT]):
    """Subclasses set ``model``; listings may override ``cursor_column``."""

    model: type[ModelT]
    cursor_column: ClassVar[str] = "created_at"

    # columns a caller may never rewrite through update()
    _frozen: ClassVar[frozenset[str]] = frozenset({"id", "user_id", "created_at", "updated_at"})

    # ── lookups ───────────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, pk: uuid.UUID) -> ModelT | None:
        return await session.get(self.model, pk)

    async def get_owned(
        self, session: AsyncSession, pk: uuid.UUID, user_id: uuid.UUID
    ) -> ModelT | None:
        """Return the row only if it belongs to *user_id*.

        A row owned by someone else is reported exactly like a missing one.
        """
        obj = await session.get(self.model, pk)
        if obj is None or getattr(obj, "user_id", None) != user_id:
            return None
        return obj

    async def first(self, session: AsyncSession, *criteria: ColumnElement[bool]) -> ModelT | None:
        result = await session.execute(select(self.model).where(*criteria).limit(1))
        return result.scalars().first()

    async def count(self, session: AsyncSession, *criteria: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model).where(*criteria)
        return (await session.execute(stmt)).scalar_one()

    # ── writes ────────────────────────────────────────────────────────────

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        obj = self.model(**values)
        session.add(obj)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def update(self, session: AsyncSession, obj: ModelT, **values: Any) -> ModelT:
        """Assign *values* to an already loaded *obj* and flush."""
        columns = self.model.__mapper__.column_attrs.keys()
        for key in values:
            if key in self._frozen:
                raise AttributeError(f"{self.model.__name__}.{key} cannot be changed")
            if key not in columns:
                raise AttributeError(f"{self.model.__name__} has no column {key!r}")
        for key, val in values.items():
            setattr(obj, key, val)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def delete(self, session: AsyncSession, obj: ModelT) -> None:
        await session.delete(obj)
        await session.flush()

    # ── keyset pagination ─────────────────────────────────────────────────

    async def paginate(
        self,
        session: AsyncSession,
        query: Select,
        *,
        cursor: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[ModelT]:
        """Newest-first page of *query* ordered by ``(cursor_column, id)``.

        *query* must not carry its own ORDER BY / LIMIT. Raises
        :class:`InvalidCursorError` for a bad *cursor*.
        """
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        sort_col = getattr(self.model, self.cursor_column)
        id_col = self.model.id

        if cursor:
            position, row_id = decode_cursor(cursor, self.cursor_column)
            query = query.where(tuple_(sort_col, id_col) < (position, row_id))

        query = query.order_by(sort_col.desc(), id_col.desc()).limit(page_size + 1)
        rows = list((await session.execute(query)).scalars().all())

        has_more = len(rows) > page_size
        data = rows[:page_size]
        next_cursor = None
        if has_more:
            last = data[-1]
            next_cursor = encode_cursor(self.cursor_column, getattr(last, self.cursor_column), last.id)
        return Page(data=data, next_cursor=next_cursor, has_more=has_more)
