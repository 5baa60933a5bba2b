from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from hotkeys.core.config import Settings
from hotkeys.core.exceptions import RateLimitError, SourceFetchError
from hotkeys.core.resilience import retry_with_backoff
from hotkeys.domain.models import AuxMetrics, RawSignal, SourceTag
from hotkeys.domain.regions import RegionResolver

logger = logging.getLogger(__name__)

GLOBAL_WOEID = "1"


class TwitterTrendsService:
    """Social trends source: trending topics for a WOEID location."""

    BASE_URL = "https://api.twitter.com/2"
    source = SourceTag.TWITTER

    def __init__(
        self,
        settings: Settings,
        woeid: str = GLOBAL_WOEID,
        regions: RegionResolver | None = None,
    ) -> None:
        self.bearer_token = settings.TWITTER_BEARER_TOKEN
        self.limit = settings.TOP_ITEMS_LIMIT
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self.woeid = woeid
        self.regions = regions or RegionResolver()

    @staticmethod
    def extract_keywords(trend_name: str) -> str:
        """Up to five words longer than two characters, without #/@ markers."""
        words = re.split(r"[\s,]+", re.sub(r"[#@]", "", trend_name))
        return ", ".join([word for word in words if len(word) > 2][:5])

    @retry_with_backoff(retries=2, delay=1.0)
    async def _get_trends_payload(self) -> Any:
        headers = {
            "Authorization": f"Bearer {self.bearer_token}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.BASE_URL}/trends/by/woeid/{self.woeid}", headers=headers)
            response.raise_for_status()
            return response.json()

    def _to_signal(self, trend: Any) -> RawSignal | None:
        if not isinstance(trend, dict):
            return None
        name = trend.get("trend_name") or trend.get("trend") or trend.get("name")
        if not isinstance(name, str) or not name.strip():
            return None
        volume = trend.get("tweet_count", trend.get("tweet_volume"))
        try:
            volume = float(volume) if volume is not None else None
        except (TypeError, ValueError):
            volume = None
        url = trend.get("url")
        return RawSignal(
            keyword=name.strip(),
            description=self.extract_keywords(name),
            area=self.regions.from_woeid(self.woeid),
            source=self.source,
            aux_metrics=AuxMetrics(volume=volume, url=url if isinstance(url, str) else None),
        )

    async def fetch(self) -> list[RawSignal]:
        """Fetch current trends. Returns [] when no bearer token is configured."""
        if not self.bearer_token:
            logger.warning("Twitter bearer token not configured; skipping Twitter trends")
            return []

        try:
            payload = await self._get_trends_payload()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 429:
                raise RateLimitError("Twitter") from exc
            if status_code == 401:
                logger.error("Twitter API authentication failed; check TWITTER_BEARER_TOKEN")
            raise SourceFetchError("twitter", f"HTTP {status_code}", status_code=status_code) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceFetchError("twitter", f"request failed: {exc}") from exc

        trends = payload.get("data", []) if isinstance(payload, dict) else []
        if not isinstance(trends, list):
            trends = []
        signals = [signal for signal in (self._to_signal(trend) for trend in trends) if signal is not None]
        return signals[: self.limit]
