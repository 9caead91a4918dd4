"""SQLAlchemy ORM models — one file per table."""

from packsafe.models.project import Project
from packsafe.models.scan_result import ScanResult
from packsafe.models.user import User

__all__ = [
    "Project",
    "ScanResult",
    "User",
]
