from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from hotkeys.core.config import REQUEST_TIMEOUT_SECONDS
from hotkeys.core.exceptions import ConfigurationError
from hotkeys.domain.models import CollectionSummary, RawSignal, SourceReport, SourceTag, utc_now
from hotkeys.services.persistence_svc import DEFAULT_RETENTION_DAYS, HotKeyPersistenceService
from hotkeys.services.ranking_svc import HotKeyRanker

logger = logging.getLogger(__name__)

SOURCE_LABELS: dict[SourceTag, str] = {
    SourceTag.TWITTER: "Twitter",
    SourceTag.REDDIT: "Reddit",
    SourceTag.GOOGLE_TRENDS: "Google Trends",
}


class SourceAdapter(Protocol):
    source: SourceTag

    async def fetch(self) -> list[RawSignal]: ...


class CollectorService:
    """
    Runs one collection pass: fetch every source, rank, persist.

    Sources are fetched concurrently and independently; a failing or slow
    source contributes no signals and one error line to the summary. Only
    an unreachable store or a configuration error aborts a run, and both
    are reported in the summary rather than raised.
    """

    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        persistence: HotKeyPersistenceService,
        ranker: HotKeyRanker | None = None,
        top_n: int = 10,
        source_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.sources = list(sources)
        self.persistence = persistence
        self.ranker = ranker or HotKeyRanker()
        self.top_n = top_n
        self.source_timeout = source_timeout
        self.last_summary: CollectionSummary | None = None

    async def _fetch_source(self, adapter: SourceAdapter) -> list[RawSignal]:
        signals = await asyncio.wait_for(adapter.fetch(), timeout=self.source_timeout)
        if not isinstance(signals, list):
            raise TypeError(f"{adapter.source.value} returned {type(signals).__name__}, expected list")
        return [signal for signal in signals if isinstance(signal, RawSignal)]

    @staticmethod
    def _describe_error(exc: BaseException) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return "timed out"
        return str(exc) or exc.__class__.__name__

    async def collect_signals(self, summary: CollectionSummary) -> list[RawSignal]:
        """Fetch all sources concurrently and record a report per source."""
        results = await asyncio.gather(
            *(self._fetch_source(adapter) for adapter in self.sources),
            return_exceptions=True,
        )

        collected: list[RawSignal] = []
        for adapter, outcome in zip(self.sources, results):
            label = SOURCE_LABELS.get(adapter.source, adapter.source.value)
            report = SourceReport(source=adapter.source)
            if isinstance(outcome, (asyncio.CancelledError, ConfigurationError)):
                raise outcome
            if isinstance(outcome, BaseException):
                report.error = self._describe_error(outcome)
                summary.errors.append(f"{label}: {report.error}")
                logger.error("%s collection failed: %s", label, report.error, extra={"source": adapter.source.value})
            else:
                report.collected = len(outcome)
                collected.extend(outcome)
                logger.info("%s: collected %d items", label, report.collected, extra={"source": adapter.source.value})
            summary.sources[adapter.source.value] = report
        summary.total_collected = len(collected)
        return collected

    def _finish(self, summary: CollectionSummary, started: float) -> CollectionSummary:
        summary.finished_at = utc_now()
        summary.duration_ms = int((time.monotonic() - started) * 1000)
        self.last_summary = summary
        return summary

    async def run_once(self) -> CollectionSummary:
        """Run the pipeline once. Safe to call repeatedly; reruns only refresh existing rows."""
        started = time.monotonic()
        summary = CollectionSummary(started_at=utc_now())
        logger.info("Starting hot keyword collection")

        if not await self.persistence.health_check():
            summary.aborted = True
            summary.errors.append("Storage: health check failed; run aborted before collection")
            logger.error("Storage unavailable; aborting collection run")
            return self._finish(summary, started)

        try:
            signals = await self.collect_signals(summary)
            ranked = self.ranker.reduce(signals, self.top_n)
        except ConfigurationError as exc:
            summary.aborted = True
            summary.errors.append(f"Configuration: {exc}")
            logger.error("Collection aborted by configuration error: %s", exc)
            return self._finish(summary, started)

        summary.total_retained = len(ranked)
        if ranked:
            summary.upsert = await self.persistence.upsert_all(ranked)
            summary.total_persisted = summary.upsert.persisted
            if summary.upsert.failed:
                summary.errors.append(f"Storage: {summary.upsert.failed} hot keys failed to save")
        else:
            logger.warning("No hot keys collected in this run")

        self._finish(summary, started)
        logger.info(
            "Collection finished in %dms: collected %d, retained %d, persisted %d, errors %d",
            summary.duration_ms,
            summary.total_collected,
            summary.total_retained,
            summary.total_persisted,
            len(summary.errors),
        )
        return summary

    async def cleanup_old_data(self, days_old: int = DEFAULT_RETENTION_DAYS) -> int:
        return await self.persistence.retention_sweep(days_old)

    async def get_collection_stats(self) -> dict[str, Any]:
        last_run: datetime | None = self.last_summary.finished_at if self.last_summary else None
        return {
            "database": await self.persistence.stats(),
            "sources": {adapter.source.value: SOURCE_LABELS.get(adapter.source, adapter.source.value) for adapter in self.sources},
            "last_collection": last_run,
        }
