"""Entry request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class EntryCreate(BaseModel):
    original_image_url: str = Field(min_length=1, max_length=500)
    last_image_url: str | None = Field(None, max_length=500)
    prompt: str | None = Field(None, max_length=4000)


class SubmitEntryRequest(BaseModel):
    prompt: str | None = Field(None, max_length=4000)
    workflow_id: str | None = Field(None, max_length=100)
    iteration_steps: int | None = Field(None, ge=1, le=64)
    video_duration: float | None = Field(None, gt=0, le=60)
    video_resolution: str | None = Field(None, max_length=20)
    lora_weights: dict[str, float] | None = None
    seed: int | None = None

    def workflow_fields(self) -> dict:
        return self.model_dump(exclude={"prompt"})


class EntryResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    status: str
    is_local_job: bool
    job_id: str | None = None
    original_image_url: str
    last_image_url: str | None = None
    prompt: str | None = None
    final_video_url: str | None = None
    is_published: bool = False
    processing_started_at: datetime | None = None
    processing_time_ms: int | None = None
    progress_percentage: float | None = None
    progress_details: dict | None = None
    workflow_id: str | None = None
    iteration_steps: int | None = None
    video_duration: float | None = None
    video_resolution: str | None = None
    lora_weights: dict | None = None
    seed: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class EntryStatusResponse(BaseModel):
    status: str
    final_video_url: str | None = None
    progress_percentage: float | None = None
    progress_details: dict | None = None


class RetryResponse(BaseModel):
    action: str
    entry: EntryResponse


class QuotaResponse(BaseModel):
    used: int
    limit: int
    remaining: int
    exceeded: bool
