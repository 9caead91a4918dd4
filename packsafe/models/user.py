"""users table."""

import uuid
from typing import Optional

from sqlalchemy import Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from packsafe.core.database import Base, TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(
        Text, nullable=False, default="user", server_default=text("'user'")
    )
    # NULLs never collide under a unique index, so unset keys are fine.
    api_key: Mapped[Optional[str]] = mapped_column(Text, unique=True)
