from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from hotkeys.api.dependencies import get_oauth_client, get_persistence_service
from hotkeys.core.config import Settings, get_settings
from hotkeys.services.oauth_svc import RedditOAuthClient
from hotkeys.services.persistence_svc import HotKeyPersistenceService

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
async def health(
    persistence: HotKeyPersistenceService = Depends(get_persistence_service),
    oauth_client: RedditOAuthClient = Depends(get_oauth_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Liveness plus storage reachability."""
    storage_ok = await persistence.health_check()
    return {
        "status": "healthy" if storage_ok else "degraded",
        "service": "Hot Keyword Aggregator",
        "storage": "ok" if storage_ok else "unavailable",
        "oauth": oauth_client.status(),
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
