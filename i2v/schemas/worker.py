"""Local worker task-claim schemas."""

import uuid

from pydantic import BaseModel


class WorkerTaskResponse(BaseModel):
    id: str
    entry_id: uuid.UUID
    input: dict
