"""Remote queue availability report shared by /health and the admin view."""

import logging

from i2v.errors import RemoteBackendError
from i2v.models.admin_settings import AdminSettings
from i2v.schemas.settings import LocalQueueStatus, QueueStatusResponse, RemoteJobStats
from i2v.services.job_router import JobRouter
from i2v.services.job_store import QueueStats

logger = logging.getLogger(__name__)


async def check_remote_queue(router: JobRouter, settings: AdminSettings) -> QueueStatusResponse:
    """Never raises: an unconfigured or unreachable backend reports available=False."""
    if router.remote is None:
        return QueueStatusResponse(available=False, queueFull=False, reason="Remote backend not configured")

    try:
        health = await router.remote_health()
    except RemoteBackendError as e:
        logger.warning("Remote health check failed: %s", e.message)
        return QueueStatusResponse(
            available=False,
            queueFull=False,
            reason="Unable to check remote backend status",
            error=e.message,
        )

    jobs = health.jobs
    threshold = settings.max_queue_threshold
    queue_full = threshold > 0 and jobs.in_queue >= threshold
    return QueueStatusResponse(
        available=not queue_full,
        queueFull=queue_full,
        reason=f"Queue is full ({jobs.in_queue}/{threshold}). Please try again later." if queue_full else None,
        stats=RemoteJobStats(
            inQueue=jobs.in_queue, inProgress=jobs.in_progress, completed=jobs.completed, failed=jobs.failed
        ),
        workers=health.workers,
        threshold=threshold,
    )


def local_queue_status(settings: AdminSettings, stats: QueueStats) -> LocalQueueStatus:
    return LocalQueueStatus(
        threshold=settings.local_queue_threshold,
        enabled=settings.local_routing_enabled,
        inQueue=stats.in_queue,
        processing=stats.processing,
        completed=stats.completed,
        failed=stats.failed,
    )
