"""
Migration sweeper: promotes long-waiting local jobs to the remote queue.

Runs as a background task bound to the application lifespan and can also be
triggered once from the admin API. A job is taken out of the local queue by
compare-and-set to processing (so no worker can claim it meanwhile), submitted
remotely, then re-placed as a remote in_queue job. If the submission fails the
job goes back to the local queue untouched.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from i2v.errors import QueueFullError, ServiceError
from i2v.models import status as st
from i2v.models.admin_settings import AdminSettings
from i2v.models.placement import encode_placement
from i2v.models.user import PAID_ROLES
from i2v.services.job_router import JobRouter
from i2v.services.job_store import JobStore, QueuedJob
from i2v.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

SWEEP_BATCH_SIZE = 20


@dataclass
class SweepReport:
    local_depth: int = 0
    migrated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "local_depth": self.local_depth,
            "migrated": self.migrated,
            "failed": self.failed,
            "skipped_reason": self.skipped_reason,
        }


def is_eligible(job: QueuedJob, settings: AdminSettings, now: datetime) -> bool:
    """Paid owners wait paid_max_wait_minutes, everyone else free_max_wait_minutes."""
    entry = job.entry
    since = as_utc(entry.processing_started_at or entry.created_at)
    waited = now - since
    if any(role in PAID_ROLES for role in job.owner_roles):
        if waited >= timedelta(minutes=settings.paid_max_wait_minutes):
            return True
    return waited >= timedelta(minutes=settings.free_max_wait_minutes)


class MigrationSweeper:
    def __init__(
        self,
        store: JobStore,
        router: JobRouter,
        interval: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.router = router
        self.interval = interval
        self.clock = clock
        self._task: asyncio.Task | None = None
        self._running = False

    # ── Lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self.interval <= 0 or self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Migration sweeper started (every %.0fs)", self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Migration sweeper stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Migration sweep failed")
            await asyncio.sleep(self.interval)

    # ── Sweep ────────────────────────────────────────────

    async def run_once(self) -> SweepReport:
        settings = await self.store.get_admin_settings()
        stats = await self.store.get_local_queue_stats()
        report = SweepReport(local_depth=stats.in_queue)

        if not settings.local_routing_enabled:
            report.skipped_reason = "local routing disabled"
            return report
        if settings.local_queue_migration_threshold <= 0:
            report.skipped_reason = "migration disabled"
            return report
        if self.router.remote is None:
            report.skipped_reason = "remote backend not configured"
            return report
        if stats.in_queue < settings.local_queue_migration_threshold:
            report.skipped_reason = "local queue below migration threshold"
            return report

        now = self.clock()
        depth = stats.in_queue
        for job in await self.store.list_queued_local_jobs(limit=SWEEP_BATCH_SIZE):
            if depth < settings.local_queue_migration_threshold:
                break
            if not is_eligible(job, settings, now):
                continue
            try:
                migrated = await self._migrate(job, settings)
            except QueueFullError:
                report.failed.append(str(job.entry.id))
                report.skipped_reason = "remote queue full"
                break
            if migrated:
                report.migrated.append(str(job.entry.id))
                depth -= 1
            else:
                report.failed.append(str(job.entry.id))

        if report.migrated:
            logger.info("Migrated %d local jobs to the remote queue", len(report.migrated))
        return report

    async def _migrate(self, job: QueuedJob, settings: AdminSettings) -> bool:
        entry_id = job.entry.id
        waiting_since = job.entry.processing_started_at
        claimed = await self.store.transition_entry(
            entry_id, st.IN_QUEUE, {"status": st.PROCESSING, "processing_started_at": self.clock()}, local_only=True
        )
        if claimed is None:
            # a worker took it first
            return False

        try:
            placement = await self.router.submit_remote(claimed, settings)
        except ServiceError as e:
            logger.warning("Migrating entry %s failed, returning it to the local queue: %s", entry_id, e.message)
            await self.store.transition_entry(
                entry_id,
                st.PROCESSING,
                {"status": st.IN_QUEUE, "processing_started_at": waiting_since},
                local_only=True,
            )
            if isinstance(e, QueueFullError):
                raise
            return False
        patch = {**encode_placement(placement), "status": st.IN_QUEUE, "processing_started_at": self.clock()}
        moved = await self.store.transition_entry(entry_id, st.PROCESSING, patch, local_only=True)
        if moved is None:
            logger.warning("Entry %s changed while migrating; remote job %s left orphaned", entry_id, placement.job_id)
            return False
        logger.info("Migrated entry %s to remote job %s", entry_id, placement.job_id)
        return True
