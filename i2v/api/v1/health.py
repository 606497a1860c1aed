"""Health check endpoints."""

from fastapi import APIRouter, Depends

from i2v.container import Container
from i2v.dependencies import get_container
from i2v.schemas.settings import HealthResponse
from i2v.services.queue_status import check_remote_queue

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check(container: Container = Depends(get_container)):
    """Remote queue availability as seen by the submission path."""
    settings = await container.store.get_admin_settings()
    report = await check_remote_queue(container.router, settings)
    return HealthResponse(**report.model_dump(include=set(HealthResponse.model_fields)))
