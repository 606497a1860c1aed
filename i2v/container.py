"""Composition root: builds the service graph once per process."""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from i2v.config import Settings
from i2v.services.job_router import JobRouter
from i2v.services.job_store import JobStore, SqlJobStore
from i2v.services.reconciler import StatusReconciler
from i2v.services.remote_client import RemoteBackendClient
from i2v.services.submission import SubmissionService
from i2v.services.workflow import WorkflowPayloadBuilder
from i2v.workers.migration_sweeper import MigrationSweeper


@dataclass
class Container:
    settings: Settings
    store: JobStore
    remote: RemoteBackendClient | None
    builder: WorkflowPayloadBuilder
    router: JobRouter
    reconciler: StatusReconciler
    submissions: SubmissionService
    sweeper: MigrationSweeper

    async def aclose(self) -> None:
        await self.sweeper.stop()
        if self.remote is not None:
            await self.remote.aclose()


def build_container(
    settings: Settings,
    store: JobStore | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    remote: RemoteBackendClient | None = None,
) -> Container:
    """Wire every service; pass store or remote to substitute fakes."""
    if store is None:
        if session_factory is None:
            raise ValueError("build_container needs either a store or a session factory")
        store = SqlJobStore(session_factory)
    if remote is None:
        remote = RemoteBackendClient.from_settings(settings)

    builder = WorkflowPayloadBuilder(settings.PUBLIC_BASE_URL, settings.WEBHOOK_SECRET)
    router = JobRouter(store, remote, builder)
    return Container(
        settings=settings,
        store=store,
        remote=remote,
        builder=builder,
        router=router,
        reconciler=StatusReconciler(
            store, router, timeout=timedelta(minutes=settings.PROCESSING_TIMEOUT_MINUTES)
        ),
        submissions=SubmissionService(store, router),
        sweeper=MigrationSweeper(store, router, interval=settings.MIGRATION_SWEEP_INTERVAL_SECONDS),
    )
