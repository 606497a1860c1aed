"""Entry ORM model: one generation request and its job state."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from i2v.db.base import Base
from i2v.models import status as st
from i2v.models.placement import Placement, decode_placement

# Fields captured at submission time so a retry can rebuild the same job
WORKFLOW_FIELDS = (
    "workflow_id",
    "iteration_steps",
    "video_duration",
    "video_resolution",
    "lora_weights",
    "seed",
)

# Fields the store accepts in a partial update; id and user_id are immutable
MUTABLE_FIELDS = frozenset(
    {
        "status",
        "is_local_job",
        "job_id",
        "processing_started_at",
        "processing_time_ms",
        "final_video_url",
        "progress_percentage",
        "progress_details",
        "prompt",
        "is_published",
        *WORKFLOW_FIELDS,
    }
)

PROGRESS_CLEARED = {"progress_percentage": None, "progress_details": None}


class Entry(Base):
    __tablename__ = "entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    original_image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    last_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=st.UPLOADED, index=True)
    is_local_job: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    job_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    final_video_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    progress_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    progress_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    workflow_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    iteration_steps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    video_duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    video_resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    lora_weights: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    seed: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    @property
    def placement(self) -> Placement | None:
        return decode_placement(self.id, bool(self.is_local_job), self.job_id)

    @property
    def is_active(self) -> bool:
        return self.status in st.ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in st.TERMINAL_STATUSES

    def workflow_inputs(self) -> dict:
        return {name: getattr(self, name) for name in WORKFLOW_FIELDS}

    def __repr__(self) -> str:
        return f"<Entry {self.id} status={self.status} job_id={self.job_id}>"
