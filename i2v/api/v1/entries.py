"""Entry API routes: create, get, submit, poll status, retry, delete."""

import uuid

from fastapi import APIRouter, Depends, status

from i2v.container import Container
from i2v.dependencies import get_container, get_current_user
from i2v.models.user import User
from i2v.schemas.entry import (
    EntryCreate,
    EntryResponse,
    EntryStatusResponse,
    QuotaResponse,
    RetryResponse,
    SubmitEntryRequest,
)
from i2v.services.quota import check_daily_quota

router = APIRouter(prefix="/entries", tags=["entries"])
quota_router = APIRouter(prefix="/quota", tags=["entries"])


@router.post("", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    payload: EntryCreate,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    return await container.submissions.create_entry(user, payload)


@router.get("/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    return await container.submissions.get_owned_entry(user, entry_id)


@router.post("/{entry_id}/submit", response_model=EntryResponse)
async def submit_entry(
    entry_id: uuid.UUID,
    payload: SubmitEntryRequest,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    return await container.submissions.submit(user, entry_id, payload)


@router.get("/{entry_id}/status", response_model=EntryStatusResponse)
async def get_entry_status(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    entry = await container.submissions.get_owned_entry(user, entry_id)
    result = await container.reconciler.poll_status(entry)
    return EntryStatusResponse(
        status=result.status,
        final_video_url=result.final_video_url,
        progress_percentage=result.progress_percentage,
        progress_details=result.progress_details,
    )


@router.post("/{entry_id}/retry", response_model=RetryResponse)
async def retry_entry(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    """Retry a failed entry; local failures are escalated to the remote queue."""
    entry = await container.submissions.get_owned_entry(user, entry_id)
    result = await container.reconciler.retry(entry)
    return RetryResponse(action=result.action, entry=EntryResponse.model_validate(result.entry))


@router.delete("/{entry_id}", response_model=EntryResponse)
async def delete_entry(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    return await container.submissions.delete(user, entry_id)


@quota_router.get("", response_model=QuotaResponse)
async def get_quota(
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    settings = await container.store.get_admin_settings()
    quota = await check_daily_quota(container.store, user, settings)
    return quota.to_dict()
