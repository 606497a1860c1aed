"""Local worker task-claim endpoint."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from i2v.container import Container
from i2v.dependencies import get_container, require_worker_secret
from i2v.schemas.common import MessageResponse
from i2v.schemas.worker import WorkerTaskResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/worker", tags=["worker"], dependencies=[Depends(require_worker_secret)])


@router.get("/task", response_model=WorkerTaskResponse, responses={404: {"description": "No tasks available"}})
async def claim_task(container: Container = Depends(get_container)):
    """Hand the oldest queued local job to the calling worker, exactly once."""
    entry = await container.store.claim_oldest_local_job()
    if entry is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=MessageResponse(message="No tasks available").model_dump(),
        )

    payload = container.builder.build(entry)
    return WorkerTaskResponse(id=entry.job_id, entry_id=entry.id, input=payload["input"])
