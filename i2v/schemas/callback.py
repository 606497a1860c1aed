"""Webhook payload schemas posted by local workers and the remote queue."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CallbackStatus = Literal["pending", "processing", "completed", "failed", "cancelled"]


class CallbackFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filename: str = Field("", max_length=500)
    type: str = Field("", max_length=50)
    data: str | None = Field(None, max_length=2000)


class CallbackProgress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    percentage: float | None = Field(None, ge=0, le=100)
    completed_nodes: int | None = Field(None, ge=0)
    total_nodes: int | None = Field(None, ge=0)
    current_node: str | None = Field(None, max_length=200)
    current_node_progress: float | None = Field(None, ge=0, le=100)


class CallbackPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, max_length=200)
    status: CallbackStatus
    files: list[CallbackFile] = Field(default_factory=list, max_length=50)
    progress: CallbackProgress | None = None
    error: str | None = Field(None, max_length=2000)

    @field_validator("status", mode="before")
    @classmethod
    def _lowercase_status(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value
