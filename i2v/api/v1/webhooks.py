"""Completion and progress callbacks from local workers and the remote queue."""

import uuid

from fastapi import APIRouter, Depends

from i2v.container import Container
from i2v.dependencies import get_container, require_webhook_token
from i2v.schemas.callback import CallbackPayload
from i2v.schemas.entry import EntryStatusResponse
from i2v.services.callbacks import apply_callback

router = APIRouter(prefix="/webhooks", tags=["webhooks"], dependencies=[Depends(require_webhook_token)])


@router.post("/entries/{entry_id}", response_model=EntryStatusResponse)
async def entry_callback(
    entry_id: uuid.UUID,
    payload: CallbackPayload,
    container: Container = Depends(get_container),
):
    entry = await apply_callback(container.store, entry_id, payload)
    return EntryStatusResponse(
        status=entry.status,
        final_video_url=entry.final_video_url,
        progress_percentage=entry.progress_percentage,
        progress_details=entry.progress_details,
    )
