"""Submission service: create, submit and soft-delete entries."""

import logging
import uuid

from i2v.errors import EntryNotFoundError, InvalidEntryStateError, ServiceError
from i2v.models import status as st
from i2v.models.entry import PROGRESS_CLEARED, Entry
from i2v.models.user import User
from i2v.schemas.entry import EntryCreate, SubmitEntryRequest
from i2v.services.job_router import JobRouter
from i2v.services.job_store import JobStore
from i2v.services.quota import enforce_submission_limits
from i2v.utils.clock import utcnow

logger = logging.getLogger(__name__)

SUBMITTABLE_STATUSES = (st.UPLOADED, st.FAILED)


class SubmissionService:
    def __init__(self, store: JobStore, router: JobRouter):
        self.store = store
        self.router = router

    async def create_entry(self, user: User, payload: EntryCreate) -> Entry:
        entry = await self.store.create_entry(
            user.id,
            payload.original_image_url,
            last_image_url=payload.last_image_url,
            prompt=payload.prompt,
        )
        logger.info("Created entry %s for user %s", entry.id, user.id)
        return entry

    async def get_owned_entry(self, user: User, entry_id: uuid.UUID) -> Entry:
        """Fetch an entry visible to this user; other users' entries look missing."""
        entry = await self.store.get_entry(entry_id)
        if entry is None or (entry.user_id != user.id and not user.is_admin):
            raise EntryNotFoundError()
        return entry

    async def submit(self, user: User, entry_id: uuid.UUID, request: SubmitEntryRequest) -> Entry:
        entry = await self.get_owned_entry(user, entry_id)
        if entry.status not in SUBMITTABLE_STATUSES:
            raise InvalidEntryStateError(f"Entry is {entry.status} and cannot be submitted.")

        settings = await self.store.get_admin_settings()
        await enforce_submission_limits(
            self.store,
            user,
            settings,
            iteration_steps=request.iteration_steps,
            video_resolution=request.video_resolution,
        )

        patch = {
            **request.workflow_fields(),
            "final_video_url": None,
            "processing_time_ms": None,
            **PROGRESS_CLEARED,
        }
        if request.prompt is not None:
            patch["prompt"] = request.prompt
        entry = await self.store.update_entry(entry.id, patch) or entry

        try:
            result = await self.router.submit_job(entry, settings)
        except ServiceError as e:
            logger.warning("Routing entry %s failed: %s", entry.id, e.message)
            await self.store.update_entry(entry.id, {"status": st.FAILED})
            raise

        queued = await self.store.update_entry(
            entry.id, {"status": st.IN_QUEUE, "processing_started_at": utcnow()}
        )
        logger.info("Entry %s queued as %s job %s", entry.id, "local" if result.is_local else "remote", result.job_id)
        return queued or entry

    async def delete(self, user: User, entry_id: uuid.UUID) -> Entry:
        entry = await self.get_owned_entry(user, entry_id)
        if entry.status == st.PROCESSING:
            raise InvalidEntryStateError("Entry is processing and cannot be deleted.")
        deleted = await self.store.update_entry(entry.id, {"status": st.DELETED, "is_published": False})
        logger.info("Deleted entry %s", entry.id)
        return deleted or entry
