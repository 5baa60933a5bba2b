from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from hotkeys.api.dependencies import get_collector_service, get_persistence_service, get_scheduler_service
from hotkeys.core.config import DEFAULT_QUERY_LIMIT
from hotkeys.core.exceptions import ValidationError
from hotkeys.domain.models import AreaTag, CollectionSummary, HotKeyRecord
from hotkeys.services.collector_svc import CollectorService
from hotkeys.services.persistence_svc import HotKeyPersistenceService
from hotkeys.services.scheduler_svc import SchedulerService

router = APIRouter(prefix="/api", tags=["hotkeys"])


@router.api_route("/collect", methods=["GET", "POST"])
async def collect_now(
    scheduler: SchedulerService = Depends(get_scheduler_service),
) -> CollectionSummary:
    """Run the collection pipeline once and return its summary."""
    return await scheduler.run_once()


@router.get("/hotkeys")
async def list_hot_keys(
    area: AreaTag | None = None,
    limit: int = Query(default=DEFAULT_QUERY_LIMIT, ge=1, le=500),
    persistence: HotKeyPersistenceService = Depends(get_persistence_service),
) -> list[HotKeyRecord]:
    """Most recently refreshed hot keys, optionally filtered by area."""
    return await persistence.query(area=area, limit=limit)


@router.get("/stats")
async def get_stats(
    collector: CollectorService = Depends(get_collector_service),
) -> dict[str, Any]:
    return await collector.get_collection_stats()


@router.get("/scheduler")
async def get_scheduler_status(
    scheduler: SchedulerService = Depends(get_scheduler_service),
) -> dict[str, Any]:
    return scheduler.get_status()


@router.put("/scheduler/interval")
async def update_scheduler_interval(
    minutes: int,
    scheduler: SchedulerService = Depends(get_scheduler_service),
) -> dict[str, Any]:
    try:
        scheduler.update_interval(minutes)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"status": "ok", "collection_interval_minutes": scheduler.interval_minutes}
