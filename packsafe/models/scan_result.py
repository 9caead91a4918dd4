"""scan_results table — append-only, one row per scan invocation."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Text,
    Uuid,
    desc,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from packsafe.core.database import Base, TimestampMixin, UserOwnedMixin, utcnow


class ScanResult(UserOwnedMixin, TimestampMixin, Base):
    __tablename__ = "scan_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    package_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    # {"total": int, "outdated": int, "vulnerable": int}
    summary: Mapped[dict] = mapped_column(JSON, nullable=False)
    # {"outdated": {name: {...}}, "vulnerable": {name: {...}}}
    dependencies: Mapped[dict] = mapped_column(JSON, nullable=False)
    rate_limited: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    scan_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_scan_results_user_date", "user_id", desc("scan_date")),
        Index("idx_scan_results_user_project", "user_id", "project_name"),
    )
