from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Literal, TypeVar

from hotkeys.core.config import DEFAULT_QUERY_LIMIT, HOT_KEY_DESC_MAX_LENGTH, HOT_KEY_MAX_LENGTH, REQUEST_TIMEOUT_SECONDS
from hotkeys.core.exceptions import DuplicateHotKeyError, StorageError
from hotkeys.domain.models import AreaTag, HotKeyRecord, RawSignal, UpsertResult, utc_now
from hotkeys.services.normalizer import truncate_text
from hotkeys.storage.hotkey_store import HotKeyStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATS_SCAN_LIMIT = 10_000
DEFAULT_RETENTION_DAYS = 7


class HotKeyPersistenceService:
    """
    Reconciles ranked signals with the hot keyword table.

    Each record is looked up by (area, hot_key): a match has its description
    and updated_at refreshed (created_at is never touched), a miss is
    inserted. Failures are counted per record and never stop the batch.
    """

    def __init__(
        self,
        store: HotKeyStore,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._pending_writes: set[asyncio.Future[str]] = set()

    @staticmethod
    def _log_detached_write(keyword: str, write: asyncio.Future[str]) -> None:
        if write.cancelled():
            logger.warning("Save of hot key '%s' was cancelled mid-write", keyword)
        elif write.exception() is not None:
            logger.error("Failed to save hot key '%s' after cancellation: %s", keyword, write.exception())
        else:
            logger.info("Hot key '%s' %s after the batch was cancelled", keyword, write.result())

    async def wait_for_pending_writes(self) -> None:
        """Wait for writes that outlived a cancelled batch."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)

    async def _call(self, operation: Awaitable[T]) -> T:
        """Run one store call under the timeout. Every failure surfaces as StorageError."""
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise StorageError(f"Storage call timed out after {self.timeout_seconds}s") from exc
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Storage call failed: {exc.__class__.__name__}: {exc}") from exc

    def build_candidate(self, signal: RawSignal) -> HotKeyRecord:
        now = self.clock()
        return HotKeyRecord(
            id="",
            area=signal.area or AreaTag.GLOBAL,
            hot_key=truncate_text(signal.keyword, HOT_KEY_MAX_LENGTH),
            hot_key_desc=truncate_text(signal.description, HOT_KEY_DESC_MAX_LENGTH),
            created_at=now,
            updated_at=now,
        )

    async def _refresh(self, existing: HotKeyRecord, candidate: HotKeyRecord) -> None:
        patch: dict[str, Any] = {
            "hot_key_desc": candidate.hot_key_desc,
            "updated_at": candidate.updated_at,
        }
        await self._call(self.store.update(existing.id, patch))

    async def upsert_one(self, signal: RawSignal) -> Literal["inserted", "updated"]:
        candidate = self.build_candidate(signal)
        existing = await self._call(self.store.find_by_area_and_key(candidate.area, candidate.hot_key))
        if existing is not None:
            await self._refresh(existing, candidate)
            logger.info("Updated hot key: %s (%s)", candidate.hot_key, candidate.area.value)
            return "updated"

        try:
            await self._call(self.store.insert(candidate))
        except DuplicateHotKeyError:
            # another run inserted the same key between our lookup and insert
            existing = await self._call(self.store.find_by_area_and_key(candidate.area, candidate.hot_key))
            if existing is None:
                raise
            await self._refresh(existing, candidate)
            logger.info("Updated hot key after insert conflict: %s (%s)", candidate.hot_key, candidate.area.value)
            return "updated"

        logger.info("Inserted hot key: %s (%s)", candidate.hot_key, candidate.area.value)
        return "inserted"

    async def upsert_all(self, records: list[RawSignal]) -> UpsertResult:
        """
        Upsert records in order.

        A write that has started is shielded from cancellation so no row is
        left half-written; records not yet started are abandoned when the
        surrounding task is cancelled.
        """
        result = UpsertResult()
        for record in records:
            write = asyncio.ensure_future(self.upsert_one(record))
            self._pending_writes.add(write)
            write.add_done_callback(self._pending_writes.discard)
            try:
                outcome = await asyncio.shield(write)
            except asyncio.CancelledError:
                # the write keeps running; report how it ends since nobody awaits it now
                write.add_done_callback(partial(self._log_detached_write, record.keyword))
                raise
            except StorageError as exc:
                result.failed += 1
                logger.error("Failed to save hot key '%s': %s", record.keyword, exc)
                continue
            if outcome == "inserted":
                result.inserted += 1
            else:
                result.updated += 1

        logger.info(
            "Hot key save finished: inserted %d, updated %d, failed %d",
            result.inserted,
            result.updated,
            result.failed,
        )
        return result

    async def retention_sweep(self, max_age_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete rows not refreshed for ``max_age_days``. Returns 0 on storage errors."""
        cutoff = self.clock() - timedelta(days=max_age_days)
        try:
            deleted = await self._call(self.store.delete_older_than(cutoff))
        except StorageError as exc:
            logger.error("Failed to clean up expired hot keys: %s", exc)
            return 0
        logger.info("Cleaned up %d hot keys older than %d days", deleted, max_age_days)
        return deleted

    async def query(self, area: AreaTag | None = None, limit: int = DEFAULT_QUERY_LIMIT) -> list[HotKeyRecord]:
        """Most recently refreshed hot keys, optionally for one area."""
        try:
            return await self._call(self.store.list_by_area(area, limit))
        except StorageError as exc:
            logger.error("Failed to load hot keys for %s: %s", area.value if area else "all areas", exc)
            return []

    async def health_check(self) -> bool:
        try:
            return bool(await self._call(self.store.health_check()))
        except StorageError as exc:
            logger.error("Storage health check failed: %s", exc)
            return False

    async def stats(self) -> dict[str, Any]:
        """Row count and per-area distribution."""
        try:
            rows = await self._call(self.store.list_by_area(None, STATS_SCAN_LIMIT))
        except StorageError as exc:
            logger.error("Failed to compute hot key stats: %s", exc)
            rows = []
        distribution = Counter(row.area.value for row in rows)
        return {
            "total_count": len(rows),
            "area_distribution": dict(sorted(distribution.items())),
            "last_updated": max((row.updated_at for row in rows), default=None),
        }
