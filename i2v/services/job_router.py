"""
Local-vs-remote placement for submitted entries.

The router reads local queue depth, compares it to the admin threshold and
either places the job on the local worker pool or forwards it to the remote
queue. It persists placement fields only; the caller owns the status
transition that follows.
"""

import logging
from dataclasses import dataclass

from i2v.errors import ConfigurationError, QueueFullError
from i2v.models.admin_settings import AdminSettings
from i2v.models.entry import Entry
from i2v.models.placement import LocalPlacement, Placement, RemotePlacement, encode_placement
from i2v.services.job_store import JobStore
from i2v.services.remote_client import HealthResponse, RemoteBackendClient
from i2v.services.status_sources import PollSource, PushSource, StatusSource
from i2v.services.workflow import WorkflowPayloadBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingResult:
    placement: Placement

    @property
    def is_local(self) -> bool:
        return self.placement.is_local

    @property
    def job_id(self) -> str:
        return self.placement.job_id


class JobRouter:
    def __init__(
        self,
        store: JobStore,
        remote: RemoteBackendClient | None,
        builder: WorkflowPayloadBuilder,
    ):
        self.store = store
        self.remote = remote
        self.builder = builder
        self._push_source = PushSource()
        self._poll_source = PollSource(remote) if remote is not None else None

    def require_remote(self) -> RemoteBackendClient:
        if self.remote is None:
            raise ConfigurationError("Remote rendering backend is not configured (endpoint URL and API key).")
        return self.remote

    async def submit_job(self, entry: Entry, settings: AdminSettings) -> RoutingResult:
        stats = await self.store.get_local_queue_stats()
        depth = stats.in_queue
        threshold = settings.local_queue_threshold

        if threshold > 0 and depth < threshold:
            placement: Placement = LocalPlacement(entry.id)
            logger.info("Routing entry %s locally (local depth %d < %d)", entry.id, depth, threshold)
        else:
            if threshold <= 0:
                logger.info("Local routing disabled, routing entry %s remotely", entry.id)
            else:
                logger.info("Local queue full (%d >= %d), routing entry %s remotely", depth, threshold, entry.id)
            placement = await self.submit_remote(entry, settings)

        await self.store.update_entry(entry.id, encode_placement(placement))
        return RoutingResult(placement)

    async def submit_remote(self, entry: Entry, settings: AdminSettings | None = None) -> RemotePlacement:
        """Submit to the remote queue without persisting anything."""
        remote = self.require_remote()
        if settings is not None:
            await self.check_remote_admission(settings)
        response = await remote.submit(self.builder.build(entry))
        return RemotePlacement(response.id)

    async def remote_health(self) -> HealthResponse:
        return await self.require_remote().health()

    async def check_remote_admission(self, settings: AdminSettings) -> None:
        if settings.max_queue_threshold <= 0:
            return
        health = await self.remote_health()
        if health.jobs.in_queue >= settings.max_queue_threshold:
            logger.warning(
                "Remote queue full (%d >= %d)", health.jobs.in_queue, settings.max_queue_threshold
            )
            raise QueueFullError()

    def status_source(self, entry: Entry) -> StatusSource:
        placement = entry.placement
        if isinstance(placement, RemotePlacement):
            if self._poll_source is None:
                raise ConfigurationError("Remote rendering backend is not configured (endpoint URL and API key).")
            return self._poll_source
        return self._push_source
