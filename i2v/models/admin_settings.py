"""AdminSettings ORM model: singleton row of runtime queue policy."""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from i2v.db.base import Base

SETTINGS_ROW_ID = "default"

DEFAULT_QUOTA_PER_DAY = {"free-tier": 10, "gmgard-user": 50, "paid-tier": 100, "premium-tier": 100}
FREE_TIER_ROLE = "free-tier"


def default_admin_settings() -> dict:
    return {
        "quota_per_day": dict(DEFAULT_QUOTA_PER_DAY),
        "max_concurrent_jobs": 5,
        "max_queue_threshold": 5000,
        "local_queue_threshold": 0,
        "local_queue_migration_threshold": 5,
        "free_max_wait_minutes": 30,
        "paid_max_wait_minutes": 0,
    }


class AdminSettings(Base):
    __tablename__ = "admin_settings"

    id: Mapped[str] = mapped_column(String(20), primary_key=True, default=SETTINGS_ROW_ID)
    quota_per_day: Mapped[dict] = mapped_column(JSON, default=lambda: dict(DEFAULT_QUOTA_PER_DAY))
    max_concurrent_jobs: Mapped[int] = mapped_column(Integer, default=5)
    max_queue_threshold: Mapped[int] = mapped_column(Integer, default=5000)
    # <= 0 disables local routing entirely
    local_queue_threshold: Mapped[int] = mapped_column(Integer, default=0)
    local_queue_migration_threshold: Mapped[int] = mapped_column(Integer, default=5)
    free_max_wait_minutes: Mapped[int] = mapped_column(Integer, default=30)
    paid_max_wait_minutes: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def local_routing_enabled(self) -> bool:
        return self.local_queue_threshold > 0
