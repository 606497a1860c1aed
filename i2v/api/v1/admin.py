"""Admin API routes: runtime settings, queue status, manual migration sweep."""

from fastapi import APIRouter, Depends

from i2v.container import Container
from i2v.dependencies import get_container, require_admin
from i2v.schemas.settings import AdminSettingsResponse, AdminSettingsUpdate, QueueStatusResponse
from i2v.services.queue_status import check_remote_queue, local_queue_status

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/settings", response_model=AdminSettingsResponse)
async def get_settings(container: Container = Depends(get_container)):
    return await container.store.get_admin_settings()


@router.put("/settings", response_model=AdminSettingsResponse)
async def update_settings(payload: AdminSettingsUpdate, container: Container = Depends(get_container)):
    return await container.store.update_admin_settings(payload.to_patch())


@router.get("/queue-status", response_model=QueueStatusResponse, response_model_exclude_none=True)
async def get_queue_status(container: Container = Depends(get_container)):
    settings = await container.store.get_admin_settings()
    report = await check_remote_queue(container.router, settings)
    stats = await container.store.get_local_queue_stats()
    report.localQueue = local_queue_status(settings, stats)
    return report


@router.post("/migrations/run")
async def run_migration_sweep(container: Container = Depends(get_container)):
    report = await container.sweeper.run_once()
    return report.to_dict()
