"""Applies worker and provider callbacks to entries."""

import logging
import uuid

from i2v.errors import EntryNotFoundError, InvalidEntryStateError, JobMismatchError
from i2v.models import status as st
from i2v.models.entry import PROGRESS_CLEARED, Entry
from i2v.schemas.callback import CallbackPayload
from i2v.services.job_store import JobStore
from i2v.services.remote_client import find_video_url
from i2v.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

CALLBACK_STATUS_MAP = {
    "pending": st.IN_QUEUE,
    "processing": st.PROCESSING,
    "completed": st.COMPLETED,
    "failed": st.FAILED,
    "cancelled": st.FAILED,
}


def build_callback_patch(entry: Entry, payload: CallbackPayload) -> dict:
    new_status = CALLBACK_STATUS_MAP[payload.status]
    video_url = None
    if new_status == st.COMPLETED:
        video_url = find_video_url([f.model_dump() for f in payload.files])
        if not video_url:
            logger.warning("Callback for entry %s reported completion without a video file", entry.id)
            new_status = st.FAILED

    now = utcnow()
    patch: dict = {"status": new_status, "final_video_url": video_url}
    started = as_utc(entry.processing_started_at)
    if started is None:
        patch["processing_started_at"] = now

    if new_status in st.TERMINAL_STATUSES:
        patch.update(PROGRESS_CLEARED)
        if started is not None:
            patch["processing_time_ms"] = int((now - started).total_seconds() * 1000)
    elif payload.progress is not None:
        progress = payload.progress.model_dump(exclude_none=True)
        patch["progress_percentage"] = progress.pop("percentage", entry.progress_percentage)
        patch["progress_details"] = progress or None
    return patch


def is_backward_move(current: str, new: str) -> bool:
    """Callbacks never undo a finished job or requeue one that is already running."""
    if current == st.COMPLETED:
        return new != st.COMPLETED
    if current == st.FAILED:
        return new not in st.TERMINAL_STATUSES
    return current == st.PROCESSING and new == st.IN_QUEUE


async def apply_callback(store: JobStore, entry_id: uuid.UUID, payload: CallbackPayload) -> Entry:
    entry = await store.get_entry(entry_id)
    if entry is None:
        raise EntryNotFoundError()
    if entry.job_id != payload.id:
        logger.warning("Callback job id %s does not match entry %s (%s)", payload.id, entry.id, entry.job_id)
        raise JobMismatchError()
    if entry.status == st.DELETED:
        raise InvalidEntryStateError("Entry has been deleted.")

    previous = entry.status
    patch = build_callback_patch(entry, payload)
    if is_backward_move(previous, patch["status"]):
        logger.warning("Ignoring callback for entry %s: %s -> %s", entry.id, previous, patch["status"])
        raise InvalidEntryStateError(f"Entry is already {previous}.")

    updated = await store.transition_entry(entry.id, previous, patch)
    if updated is None:
        raise InvalidEntryStateError("Entry changed while the callback was applied.")
    logger.info("Callback for entry %s: %s -> %s", entry.id, previous, patch["status"])
    return updated
