from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from hotkeys.core.exceptions import ValidationError
from hotkeys.domain.models import CollectionSummary, utc_now
from hotkeys.services.collector_svc import CollectorService

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 24 * 60 * 60
MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 1440


class SchedulerService:
    """Periodic trigger for collection and retention cleanup, run as asyncio tasks."""

    def __init__(
        self,
        collector: CollectorService,
        interval_minutes: int = 30,
        retention_days: int = 7,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self.collector = collector
        self.interval_minutes = self._validate_interval(interval_minutes)
        self.retention_days = retention_days
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._run_lock = asyncio.Lock()
        self.last_run_at: datetime | None = None
        self.last_cleanup_at: datetime | None = None

    @staticmethod
    def _validate_interval(minutes: int) -> int:
        if not MIN_INTERVAL_MINUTES <= minutes <= MAX_INTERVAL_MINUTES:
            raise ValidationError(
                f"Collection interval must be between {MIN_INTERVAL_MINUTES} and {MAX_INTERVAL_MINUTES} minutes"
            )
        return minutes

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    async def execute_collection(self) -> CollectionSummary | None:
        """Run one collection unless another is already in flight."""
        if self._run_lock.locked():
            logger.warning("Collection already in progress; skipping this tick")
            return None
        async with self._run_lock:
            summary = await self.collector.run_once()
            self.last_run_at = utc_now()
            return summary

    async def execute_cleanup(self) -> int:
        deleted = await self.collector.cleanup_old_data(self.retention_days)
        self.last_cleanup_at = utc_now()
        return deleted

    async def run_once(self) -> CollectionSummary:
        """Manual trigger. Waits for an in-flight scheduled run instead of skipping."""
        async with self._run_lock:
            summary = await self.collector.run_once()
            self.last_run_at = utc_now()
            return summary

    async def _collection_loop(self, run_immediately: bool = True) -> None:
        if not run_immediately:
            await asyncio.sleep(self.interval_minutes * 60)
        while True:
            try:
                await self.execute_collection()
            except Exception:
                logger.exception("Scheduled collection failed")
            await asyncio.sleep(self.interval_minutes * 60)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                await self.execute_cleanup()
            except Exception:
                logger.exception("Scheduled cleanup failed")

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler already running")
            return
        logger.info("Starting scheduler: collection every %d minutes", self.interval_minutes)
        self._tasks = {
            "collection": asyncio.create_task(self._collection_loop(), name="hotkeys-collection"),
            "cleanup": asyncio.create_task(self._cleanup_loop(), name="hotkeys-cleanup"),
        }

    async def stop(self) -> None:
        if not self._tasks:
            return
        logger.info("Stopping scheduler")
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()

    def update_interval(self, minutes: int) -> None:
        """Change the collection interval, restarting the collection loop if running."""
        self.interval_minutes = self._validate_interval(minutes)
        task = self._tasks.get("collection")
        if task is not None and not task.done():
            task.cancel()
            self._tasks["collection"] = asyncio.create_task(self._collection_loop(run_immediately=False), name="hotkeys-collection")
        logger.info("Collection interval updated to %d minutes", minutes)

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "tasks": {name: {"running": not task.done()} for name, task in self._tasks.items()},
            "collection_in_progress": self._run_lock.locked(),
            "last_run_at": self.last_run_at,
            "last_cleanup_at": self.last_cleanup_at,
            "config": {
                "collection_interval_minutes": self.interval_minutes,
                "retention_days": self.retention_days,
                "top_items_limit": self.collector.top_n,
            },
        }
