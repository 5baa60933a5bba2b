from __future__ import annotations

from functools import lru_cache

from hotkeys.core.config import get_settings
from hotkeys.domain.regions import RegionResolver
from hotkeys.services.collector_svc import CollectorService
from hotkeys.services.oauth_svc import RedditOAuthClient
from hotkeys.services.persistence_svc import HotKeyPersistenceService
from hotkeys.services.quality_svc import QualityScorer
from hotkeys.services.ranking_svc import HotKeyRanker
from hotkeys.services.reddit_svc import RedditHotService
from hotkeys.services.scheduler_svc import SchedulerService
from hotkeys.services.trends_svc import GoogleTrendsService
from hotkeys.services.twitter_svc import TwitterTrendsService
from hotkeys.storage.hotkey_store import get_hotkey_store


@lru_cache(maxsize=1)
def get_regions() -> RegionResolver:
    return RegionResolver()


@lru_cache(maxsize=1)
def get_oauth_client() -> RedditOAuthClient:
    return RedditOAuthClient(get_settings())


@lru_cache(maxsize=1)
def get_twitter_service() -> TwitterTrendsService:
    return TwitterTrendsService(get_settings(), regions=get_regions())


@lru_cache(maxsize=1)
def get_reddit_service() -> RedditHotService:
    return RedditHotService(get_settings(), token_provider=get_oauth_client(), regions=get_regions())


@lru_cache(maxsize=1)
def get_trends_service() -> GoogleTrendsService:
    return GoogleTrendsService(get_settings(), regions=get_regions())


@lru_cache(maxsize=1)
def get_persistence_service() -> HotKeyPersistenceService:
    return HotKeyPersistenceService(
        get_hotkey_store(),
        timeout_seconds=get_settings().REQUEST_TIMEOUT_SECONDS,
    )


@lru_cache(maxsize=1)
def get_ranker() -> HotKeyRanker:
    return HotKeyRanker(QualityScorer())


@lru_cache(maxsize=1)
def get_collector_service() -> CollectorService:
    settings = get_settings()
    return CollectorService(
        sources=[get_twitter_service(), get_reddit_service(), get_trends_service()],
        persistence=get_persistence_service(),
        ranker=get_ranker(),
        top_n=settings.TOP_ITEMS_LIMIT,
        # adapters make several sequential requests; bound the whole fetch
        source_timeout=settings.REQUEST_TIMEOUT_SECONDS * 4,
    )


@lru_cache(maxsize=1)
def get_scheduler_service() -> SchedulerService:
    settings = get_settings()
    return SchedulerService(
        get_collector_service(),
        interval_minutes=settings.COLLECTION_INTERVAL_MINUTES,
        retention_days=settings.RETENTION_DAYS,
    )
