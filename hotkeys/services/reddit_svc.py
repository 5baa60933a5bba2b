from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Protocol

import httpx

from hotkeys.core.config import RATE_LIMIT_DELAY_SECONDS, Settings
from hotkeys.core.exceptions import RateLimitError, SourceFetchError
from hotkeys.core.resilience import retry_with_backoff
from hotkeys.domain.models import AuxMetrics, RawSignal, SourceTag
from hotkeys.domain.regions import DEFAULT_SUBREDDITS, RegionResolver

logger = logging.getLogger(__name__)

POSTS_PER_SUBREDDIT = 5

STOP_WORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "and", "a", "to", "are", "as", "was", "were",
        "been", "be", "have", "has", "had", "do", "does", "did", "will", "would", "should",
        "could", "can", "may", "might", "must", "shall", "of", "in", "for", "with", "by",
    }
)


class TokenProvider(Protocol):
    async def get_token(self) -> str | None: ...


class RedditHotService:
    """Link-aggregator source: hot posts across a fixed set of subreddits."""

    API_URL = "https://oauth.reddit.com"
    source = SourceTag.REDDIT

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider,
        subreddits: tuple[str, ...] = DEFAULT_SUBREDDITS,
        rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS,
        regions: RegionResolver | None = None,
    ) -> None:
        self.user_agent = settings.REDDIT_USER_AGENT
        self.limit = settings.TOP_ITEMS_LIMIT
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self.token_provider = token_provider
        self.subreddits = subreddits
        self.rate_limit_delay = rate_limit_delay
        self.regions = regions or RegionResolver()

    @staticmethod
    def extract_keywords(title: str, content: str = "") -> str:
        text = re.sub(r"[^\w\s]", "", f"{title} {content}".lower())
        words = [word for word in text.split() if len(word) > 3 and word not in STOP_WORDS]
        return ", ".join(words[:5])

    @retry_with_backoff(retries=2, delay=1.0)
    async def _get_listing(self, subreddit: str, token: str, limit: int) -> Any:
        headers = {"Authorization": f"Bearer {token}", "User-Agent": self.user_agent}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.API_URL}/r/{subreddit}/hot",
                params={"limit": limit, "raw_json": 1},
                headers=headers,
            )
            response.raise_for_status()
            return response.json()

    def _to_signal(self, child: Any, subreddit: str) -> RawSignal | None:
        data = child.get("data") if isinstance(child, dict) else None
        if not isinstance(data, dict):
            return None
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            return None
        selftext = data.get("selftext") if isinstance(data.get("selftext"), str) else ""
        permalink = data.get("permalink")
        score: float | None
        try:
            score = float(data["score"])
        except (KeyError, TypeError, ValueError):
            score = None
        return RawSignal(
            keyword=title.strip(),
            description=self.extract_keywords(title, selftext),
            area=self.regions.from_subreddit(subreddit),
            source=self.source,
            aux_metrics=AuxMetrics(
                numeric_score=score,
                url=f"https://reddit.com{permalink}" if isinstance(permalink, str) and permalink else None,
            ),
        )

    async def get_hot_posts(self, subreddit: str, token: str, limit: int = POSTS_PER_SUBREDDIT) -> list[RawSignal]:
        try:
            payload = await self._get_listing(subreddit, token, limit)
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 429:
                raise RateLimitError("Reddit") from exc
            raise SourceFetchError("reddit", f"r/{subreddit} HTTP {status_code}", status_code=status_code) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceFetchError("reddit", f"r/{subreddit} request failed: {exc}") from exc

        listing = payload.get("data", {}) if isinstance(payload, dict) else {}
        children = listing.get("children", []) if isinstance(listing, dict) else []
        if not isinstance(children, list):
            return []
        return [signal for signal in (self._to_signal(child, subreddit) for child in children) if signal is not None]

    async def fetch(self) -> list[RawSignal]:
        """Fetch hot posts from every subreddit. Returns [] when no token is available."""
        token = await self.token_provider.get_token()
        if not token:
            logger.warning("No Reddit access token available; skipping Reddit hot posts")
            return []

        posts: list[RawSignal] = []
        failures: list[str] = []
        for index, subreddit in enumerate(self.subreddits):
            if index and self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay)
            try:
                posts.extend(await self.get_hot_posts(subreddit, token))
            except RateLimitError:
                raise
            except SourceFetchError as exc:
                logger.error("Failed to fetch r/%s: %s", subreddit, exc)
                failures.append(subreddit)

        if failures and len(failures) == len(self.subreddits):
            raise SourceFetchError("reddit", f"all subreddits failed ({', '.join(failures)})")
        return posts[: self.limit]
