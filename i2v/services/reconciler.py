"""
Status reconciliation for client polls, and the explicit retry path.

poll_status() is idempotent: with no change on the backend side it never
writes. Backend failures during a poll degrade to the last persisted status;
they only propagate from retry(), where the user asked for an action.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from i2v.errors import ConfigurationError, InvalidEntryStateError, RemoteBackendError
from i2v.models import status as st
from i2v.models.entry import PROGRESS_CLEARED, Entry
from i2v.models.placement import RemotePlacement, encode_placement
from i2v.services.job_router import JobRouter
from i2v.services.job_store import JobStore
from i2v.services.remote_client import extract_video_url, map_status
from i2v.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PROCESSING_TIMEOUT = timedelta(minutes=30)

RETRY_RESUBMITTED = "resubmitted"
RETRY_RESYNCED = "resynced"
RETRY_REQUEUED = "requeued"


@dataclass(frozen=True)
class PollResult:
    status: str
    final_video_url: str | None = None
    progress_percentage: float | None = None
    progress_details: dict | None = None

    @classmethod
    def from_entry(cls, entry: Entry) -> "PollResult":
        return cls(entry.status, entry.final_video_url, entry.progress_percentage, entry.progress_details)


@dataclass(frozen=True)
class RetryResult:
    entry: Entry
    action: str


class StatusReconciler:
    def __init__(
        self,
        store: JobStore,
        router: JobRouter,
        timeout: timedelta = DEFAULT_PROCESSING_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.router = router
        self.timeout = timeout
        self.clock = clock

    # ── Poll ─────────────────────────────────────────────

    async def poll_status(self, entry: Entry) -> PollResult:
        if entry.is_terminal:
            return PollResult.from_entry(entry)

        if entry.is_active and not entry.job_id:
            logger.info("Entry %s is %s without a job id, resetting to %s", entry.id, entry.status, st.UPLOADED)
            healed = await self.store.update_entry(
                entry.id, {"status": st.UPLOADED, "processing_started_at": None}
            )
            return PollResult.from_entry(healed or entry)

        if not entry.is_active:
            return PollResult.from_entry(entry)

        if entry.status == st.PROCESSING and self._timed_out(entry):
            logger.info("Entry %s exceeded processing timeout of %s, marking failed", entry.id, self.timeout)
            failed = await self.store.update_entry(entry.id, self._terminal_patch(entry, st.FAILED, None))
            return PollResult.from_entry(failed or entry)

        try:
            snapshot = await self.router.status_source(entry).fetch(entry)
        except (RemoteBackendError, ConfigurationError) as e:
            logger.warning("Status poll for entry %s failed, keeping %s: %s", entry.id, entry.status, e.message)
            return PollResult.from_entry(entry)

        status, url = snapshot.status, snapshot.final_video_url
        if status == st.COMPLETED and not url:
            logger.warning("Job %s completed without a video file, marking failed", entry.job_id)
            status = st.FAILED
        if status != st.COMPLETED:
            url = None

        if status == entry.status and url == entry.final_video_url:
            return PollResult.from_entry(entry)

        if status in st.TERMINAL_STATUSES:
            patch = self._terminal_patch(entry, status, url)
        else:
            patch = {"status": status, "final_video_url": url}
        logger.info("Entry %s: %s -> %s", entry.id, entry.status, status)
        updated = await self.store.update_entry(entry.id, patch)
        return PollResult.from_entry(updated or entry)

    def _timed_out(self, entry: Entry) -> bool:
        started = as_utc(entry.processing_started_at)
        if started is None:
            return False
        return self.clock() - started > self.timeout

    def _terminal_patch(self, entry: Entry, status: str, url: str | None) -> dict:
        patch = {"status": status, "final_video_url": url, **PROGRESS_CLEARED}
        started = as_utc(entry.processing_started_at)
        if started is not None:
            patch["processing_time_ms"] = int((self.clock() - started).total_seconds() * 1000)
        return patch

    # ── Retry ────────────────────────────────────────────

    async def retry(self, entry: Entry) -> RetryResult:
        if entry.status != st.FAILED:
            raise InvalidEntryStateError("Only failed entries can be retried.")

        if not isinstance(entry.placement, RemotePlacement):
            # local failures are always escalated to the remote queue
            return await self._resubmit(entry)

        remote = self.router.require_remote()
        try:
            provider = await remote.get_status(entry.job_id)
        except RemoteBackendError as e:
            if not e.is_not_found:
                raise
            logger.info("Remote job %s no longer exists, resubmitting entry %s", entry.job_id, entry.id)
            return await self._resubmit(entry)

        mapped = map_status(provider.status)
        url = extract_video_url(provider)

        if mapped in (st.IN_QUEUE, st.PROCESSING):
            logger.info("Remote job %s is still %s, resyncing entry %s", entry.job_id, mapped, entry.id)
            updated = await self.store.update_entry(entry.id, self._requeue_patch(mapped))
            return RetryResult(updated or entry, RETRY_RESYNCED)

        if mapped == st.COMPLETED and url:
            logger.info("Remote job %s had completed, resyncing entry %s", entry.job_id, entry.id)
            updated = await self.store.update_entry(
                entry.id, {"status": st.COMPLETED, "final_video_url": url, **PROGRESS_CLEARED}
            )
            return RetryResult(updated or entry, RETRY_RESYNCED)

        await remote.retry(entry.job_id)
        logger.info("Retried remote job %s in place for entry %s", entry.job_id, entry.id)
        updated = await self.store.update_entry(entry.id, self._requeue_patch(st.IN_QUEUE))
        return RetryResult(updated or entry, RETRY_REQUEUED)

    async def _resubmit(self, entry: Entry) -> RetryResult:
        placement = await self.router.submit_remote(entry)
        logger.info("Resubmitted entry %s as remote job %s", entry.id, placement.job_id)
        patch = {**encode_placement(placement), **self._requeue_patch(st.IN_QUEUE)}
        updated = await self.store.update_entry(entry.id, patch)
        return RetryResult(updated or entry, RETRY_RESUBMITTED)

    def _requeue_patch(self, status: str) -> dict:
        return {
            "status": status,
            "processing_started_at": self.clock(),
            "processing_time_ms": None,
            "final_video_url": None,
            **PROGRESS_CLEARED,
        }
