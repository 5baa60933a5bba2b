from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from hotkeys.core.config import RATE_LIMIT_DELAY_SECONDS, Settings
from hotkeys.core.exceptions import RateLimitError, SourceFetchError
from hotkeys.core.resilience import retry_with_backoff
from hotkeys.domain.models import AuxMetrics, RawSignal, SourceTag
from hotkeys.domain.regions import DEFAULT_GEOS, RegionResolver

logger = logging.getLogger(__name__)

# Google prefixes its JSON responses to block script inclusion.
XSSI_PREFIX = ")]}'"
UNKNOWN_TRAFFIC = "traffic unknown"


class GoogleTrendsService:
    """Search-trends source: daily trending searches for a list of countries."""

    BASE_URL = "https://trends.google.com/trends/api/dailytrends"
    source = SourceTag.GOOGLE_TRENDS

    def __init__(
        self,
        settings: Settings,
        geos: tuple[str, ...] = DEFAULT_GEOS,
        rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS * 2,
        regions: RegionResolver | None = None,
    ) -> None:
        self.limit = settings.TOP_ITEMS_LIMIT
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self.geos = geos
        self.rate_limit_delay = rate_limit_delay
        self.regions = regions or RegionResolver()

    @staticmethod
    def describe(query: str, traffic: str | None) -> str:
        words = [word for word in query.lower().replace(",", " ").split() if len(word) > 2][:3]
        return f"{', '.join(words)} ({traffic or UNKNOWN_TRAFFIC})"

    @staticmethod
    def parse_body(body: str) -> Any:
        text = body.lstrip()
        if text.startswith(XSSI_PREFIX):
            text = text[len(XSSI_PREFIX):].lstrip(",\r\n ")
        return json.loads(text)

    @retry_with_backoff(retries=2, delay=2.0)
    async def _get_daily_trends(self, geo: str) -> str:
        params = {"hl": "en-US", "tz": "0", "geo": geo, "ns": "15"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            return response.text

    def _to_signal(self, item: Any, geo: str) -> RawSignal | None:
        if not isinstance(item, dict):
            return None
        title = item.get("title")
        query = title.get("query") if isinstance(title, dict) else None
        if not isinstance(query, str) or not query.strip():
            return None
        traffic = item.get("formattedTraffic")
        traffic = traffic if isinstance(traffic, str) and traffic else None
        articles = item.get("articles") if isinstance(item.get("articles"), list) else []
        first_url = articles[0].get("url") if articles and isinstance(articles[0], dict) else None
        return RawSignal(
            keyword=query.strip(),
            description=self.describe(query, traffic),
            area=self.regions.from_geo(geo),
            source=self.source,
            aux_metrics=AuxMetrics(traffic=traffic, url=first_url if isinstance(first_url, str) else None),
        )

    async def get_trends(self, geo: str) -> list[RawSignal]:
        try:
            body = await self._get_daily_trends(geo)
            payload = self.parse_body(body)
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 429:
                raise RateLimitError("Google Trends") from exc
            raise SourceFetchError("google_trends", f"{geo} HTTP {status_code}", status_code=status_code) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError("google_trends", f"{geo} request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SourceFetchError("google_trends", f"{geo} returned invalid JSON") from exc

        try:
            searches = payload["default"]["trendingSearchesDays"][0]["trendingSearches"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Google Trends payload for %s had no trending searches", geo)
            return []
        if not isinstance(searches, list):
            return []
        signals = [signal for signal in (self._to_signal(item, geo) for item in searches) if signal is not None]
        return signals[: self.limit]

    async def fetch(self) -> list[RawSignal]:
        """Collect trends for every configured geo; a failing geo is skipped."""
        trends: list[RawSignal] = []
        failures: list[str] = []
        for index, geo in enumerate(self.geos):
            if index and self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay)
            try:
                trends.extend(await self.get_trends(geo))
            except RateLimitError:
                raise
            except SourceFetchError as exc:
                logger.error("Failed to fetch Google Trends for %s: %s", geo, exc)
                failures.append(geo)

        if failures and len(failures) == len(self.geos):
            raise SourceFetchError("google_trends", f"all regions failed ({', '.join(failures)})")
        return trends[: self.limit]
