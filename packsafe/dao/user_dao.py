"""UserDAO — users table operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.dao.base import BaseDAO
from packsafe.models.user import User


class UserDAO(BaseDAO[User]):
    model = User

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Look up a user by e-mail (login flow). Emails are stored lower-cased."""
        return await self.first(session, User.email == email.strip().lower())

    async def get_by_api_key(self, session: AsyncSession, api_key: str) -> User | None:
        """Look up the owner of an API key (``X-API-Key`` auth)."""
        return await self.first(session, User.api_key == api_key)

    async def set_api_key(self, session: AsyncSession, user: User, api_key: str | None) -> User:
        """Replace (or clear, with None) the user's API key."""
        user.api_key = api_key
        await session.flush()
        return user

    async def ensure_exists(
        self,
        session: AsyncSession,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: str = "admin",
    ) -> tuple[User, bool]:
        """Return ``(user, created)``; insert only if the e-mail is unknown.

        Used at startup to ensure the initial admin account exists.
        """
        existing = await self.get_by_email(session, email)
        if existing is not None:
            return existing, False
        user = await self.create(
            session,
            email=email.strip().lower(),
            name=name,
            password_hash=password_hash,
            role=role,
        )
        return user, True
