from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from hotkeys.api.dependencies import get_scheduler_service
from hotkeys.core.config import Settings, get_settings
from hotkeys.core.security import verify_cron_secret
from hotkeys.domain.models import CollectionSummary
from hotkeys.services.scheduler_svc import SchedulerService

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/collect")
async def cron_collect(
    scheduler: SchedulerService = Depends(get_scheduler_service),
) -> CollectionSummary:
    """Scheduled collection run triggered by an external cron."""
    return await scheduler.run_once()


@router.post("/cleanup")
async def cron_cleanup(
    scheduler: SchedulerService = Depends(get_scheduler_service),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Retention sweep triggered by an external cron."""
    deleted = await scheduler.execute_cleanup()
    return {"status": "ok", "deleted": deleted, "retention_days": settings.RETENTION_DAYS}
