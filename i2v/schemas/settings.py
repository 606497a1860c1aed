"""Admin settings and queue-status schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class AdminSettingsResponse(BaseModel):
    quota_per_day: dict[str, int]
    max_concurrent_jobs: int
    max_queue_threshold: int
    local_queue_threshold: int
    local_queue_migration_threshold: int
    free_max_wait_minutes: int
    paid_max_wait_minutes: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class AdminSettingsUpdate(BaseModel):
    quota_per_day: dict[str, int] | None = None
    max_concurrent_jobs: int | None = Field(None, ge=0)
    max_queue_threshold: int | None = Field(None, ge=0)
    local_queue_threshold: int | None = None
    local_queue_migration_threshold: int | None = None
    free_max_wait_minutes: int | None = Field(None, ge=0)
    paid_max_wait_minutes: int | None = Field(None, ge=0)

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class RemoteJobStats(BaseModel):
    inQueue: int = 0
    inProgress: int = 0
    completed: int = 0
    failed: int = 0


class LocalQueueStatus(BaseModel):
    threshold: int
    enabled: bool
    inQueue: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class HealthResponse(BaseModel):
    available: bool
    queueFull: bool = False
    reason: str | None = None
    stats: RemoteJobStats | None = None
    threshold: int | None = None


class QueueStatusResponse(HealthResponse):
    workers: dict | None = None
    localQueue: LocalQueueStatus | None = None
    error: str | None = None
