"""
Tests for the trend source adapters with respx HTTP mocking.
"""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, Mock, patch

import pytest
import respx
from httpx import Response

from hotkeys.core.config import Settings
from hotkeys.core.exceptions import RateLimitError, SourceFetchError
from hotkeys.domain.models import AreaTag, SourceTag
from hotkeys.services.reddit_svc import RedditHotService
from hotkeys.services.trends_svc import GoogleTrendsService
from hotkeys.services.twitter_svc import TwitterTrendsService

TWITTER_URL = "https://api.twitter.com/2/trends/by/woeid/1"
TRENDS_URL = "https://trends.google.com/trends/api/dailytrends"


@pytest.fixture
def no_backoff():
    """Skip the real sleeps between retries."""
    with patch("hotkeys.core.resilience.asyncio.sleep", new=AsyncMock()):
        yield


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


def reddit_listing(*titles):
    return {
        "data": {
            "children": [
                {"data": {"title": title, "selftext": "", "score": 120, "permalink": f"/r/x/{index}"}}
                for index, title in enumerate(titles)
            ]
        }
    }


def trends_body(*queries):
    payload = {
        "default": {
            "trendingSearchesDays": [
                {
                    "trendingSearches": [
                        {
                            "title": {"query": query},
                            "formattedTraffic": "100K+",
                            "articles": [{"url": f"https://news.example.com/{index}"}],
                        }
                        for index, query in enumerate(queries)
                    ]
                }
            ]
        }
    }
    return ")]}',\n" + json.dumps(payload)


class TestTwitterTrendsService:
    @pytest.mark.asyncio
    async def test_missing_token_returns_empty(self):
        service = TwitterTrendsService(make_settings())

        assert await service.fetch() == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_trends_become_signals(self):
        respx.get(TWITTER_URL).mock(
            return_value=Response(
                200,
                json={"data": [{"trend_name": "#WorldCup Final", "tweet_count": 52000}, {"trend_name": ""}]},
            )
        )
        service = TwitterTrendsService(make_settings(TWITTER_BEARER_TOKEN="test-token"))

        signals = await service.fetch()

        assert len(signals) == 1
        assert signals[0].keyword == "#WorldCup Final"
        assert signals[0].description == "WorldCup, Final"
        assert signals[0].source == SourceTag.TWITTER
        assert signals[0].area == AreaTag.GLOBAL
        assert signals[0].aux_metrics.volume == 52000
        assert respx.calls.last.request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_output_capped_to_limit(self):
        trends = [{"name": f"Topic {index}"} for index in range(30)]
        respx.get(TWITTER_URL).mock(return_value=Response(200, json={"data": trends}))
        service = TwitterTrendsService(make_settings(TWITTER_BEARER_TOKEN="t", TOP_ITEMS_LIMIT=5))

        assert len(await service.fetch()) == 5

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_raises(self):
        respx.get(TWITTER_URL).mock(return_value=Response(429))
        service = TwitterTrendsService(make_settings(TWITTER_BEARER_TOKEN="t"))

        with pytest.raises(RateLimitError):
            await service.fetch()

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_retried_then_raises(self, no_backoff):
        route = respx.get(TWITTER_URL).mock(return_value=Response(503))
        service = TwitterTrendsService(make_settings(TWITTER_BEARER_TOKEN="t"))

        with pytest.raises(SourceFetchError) as exc_info:
            await service.fetch()

        assert exc_info.value.status_code == 503
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_transient_error_recovers(self, no_backoff):
        respx.get(TWITTER_URL).mock(
            side_effect=[Response(502), Response(200, json={"data": [{"name": "Recovered trend"}]})]
        )
        service = TwitterTrendsService(make_settings(TWITTER_BEARER_TOKEN="t"))

        signals = await service.fetch()

        assert [signal.keyword for signal in signals] == ["Recovered trend"]

    def test_extract_keywords(self):
        assert TwitterTrendsService.extract_keywords("#AI @openai news, on tech") == "openai, news, tech"


class TestRedditHotService:
    @pytest.fixture
    def token_provider(self):
        provider = Mock()
        provider.get_token = AsyncMock(return_value="reddit-token")
        return provider

    @pytest.mark.asyncio
    async def test_no_token_returns_empty(self):
        provider = Mock()
        provider.get_token = AsyncMock(return_value=None)
        service = RedditHotService(make_settings(), token_provider=provider)

        assert await service.fetch() == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_hot_posts_become_signals(self, token_provider):
        respx.get("https://oauth.reddit.com/r/news/hot").mock(
            return_value=Response(200, json=reddit_listing("Senate passes the infrastructure bill"))
        )
        service = RedditHotService(
            make_settings(), token_provider=token_provider, subreddits=("news",), rate_limit_delay=0
        )

        signals = await service.fetch()

        assert len(signals) == 1
        signal = signals[0]
        assert signal.keyword == "Senate passes the infrastructure bill"
        assert signal.description == "senate, passes, infrastructure, bill"
        assert signal.area == AreaTag.UNITED_STATES
        assert signal.aux_metrics.numeric_score == 120
        assert signal.aux_metrics.url == "https://reddit.com/r/x/0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_or_unreadable_score_is_unknown(self, token_provider):
        listing = {
            "data": {
                "children": [
                    {"data": {"title": "No score here", "selftext": "", "permalink": "/r/x/0"}},
                    {"data": {"title": "Hidden score", "selftext": "", "score": "hidden", "permalink": "/r/x/1"}},
                ]
            }
        }
        respx.get("https://oauth.reddit.com/r/news/hot").mock(return_value=Response(200, json=listing))
        service = RedditHotService(
            make_settings(), token_provider=token_provider, subreddits=("news",), rate_limit_delay=0
        )

        signals = await service.fetch()

        assert [signal.aux_metrics.numeric_score for signal in signals] == [None, None]

    @pytest.mark.asyncio
    @respx.mock
    async def test_failing_subreddit_is_skipped(self, token_provider):
        respx.get("https://oauth.reddit.com/r/popular/hot").mock(return_value=Response(404))
        respx.get("https://oauth.reddit.com/r/worldnews/hot").mock(
            return_value=Response(200, json=reddit_listing("Global summit opens"))
        )
        service = RedditHotService(
            make_settings(),
            token_provider=token_provider,
            subreddits=("popular", "worldnews"),
            rate_limit_delay=0,
        )

        signals = await service.fetch()

        assert [signal.keyword for signal in signals] == ["Global summit opens"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_subreddits_failing_raises(self, token_provider):
        respx.get("https://oauth.reddit.com/r/popular/hot").mock(return_value=Response(403))
        service = RedditHotService(
            make_settings(), token_provider=token_provider, subreddits=("popular",), rate_limit_delay=0
        )

        with pytest.raises(SourceFetchError):
            await service.fetch()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_propagates(self, token_provider):
        respx.get("https://oauth.reddit.com/r/popular/hot").mock(return_value=Response(429))
        service = RedditHotService(
            make_settings(), token_provider=token_provider, subreddits=("popular",), rate_limit_delay=0
        )

        with pytest.raises(RateLimitError):
            await service.fetch()

    def test_extract_keywords_drops_stop_words(self):
        assert RedditHotService.extract_keywords("What would they have done?") == "what, they, done"


class TestGoogleTrendsService:
    @pytest.mark.asyncio
    @respx.mock
    async def test_daily_trends_become_signals(self):
        respx.get(TRENDS_URL).mock(return_value=Response(200, text=trends_body("Champions League Final")))
        service = GoogleTrendsService(make_settings(), geos=("GB",), rate_limit_delay=0)

        signals = await service.fetch()

        assert len(signals) == 1
        signal = signals[0]
        assert signal.keyword == "Champions League Final"
        assert signal.description == "champions, league, final (100K+)"
        assert signal.area == AreaTag.EUROPE
        assert signal.source == SourceTag.GOOGLE_TRENDS
        assert signal.aux_metrics.traffic == "100K+"
        assert signal.aux_metrics.url == "https://news.example.com/0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_payload_gives_no_signals(self):
        respx.get(TRENDS_URL).mock(return_value=Response(200, text=")]}',\n{\"default\": {}}"))
        service = GoogleTrendsService(make_settings(), geos=("US",), rate_limit_delay=0)

        assert await service.fetch() == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_for_every_geo_raises(self):
        respx.get(TRENDS_URL).mock(return_value=Response(200, text="<html>blocked</html>"))
        service = GoogleTrendsService(make_settings(), geos=("US", "JP"), rate_limit_delay=0)

        with pytest.raises(SourceFetchError):
            await service.fetch()

    def test_describe_without_traffic(self):
        assert GoogleTrendsService.describe("New iPhone launch event", None) == "new, iphone, launch (traffic unknown)"

    def test_parse_body_accepts_unprefixed_json(self):
        assert GoogleTrendsService.parse_body('{"a": 1}') == {"a": 1}
