"""Key/value storage model.

Every data slice of the portal (employee master, monthly attendance,
leave applications, ...) is persisted as one JSON document under a
versioned string key.
"""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from hr_portal.database import Base


class StorageEntry(Base):
    """One persisted data slice."""
    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(120), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<StorageEntry(key='{self.key}', version={self.version})>"
