from hotkeys.services.collector_svc import CollectorService
from hotkeys.services.oauth_svc import RedditOAuthClient
from hotkeys.services.persistence_svc import HotKeyPersistenceService
from hotkeys.services.quality_svc import QualityScorer
from hotkeys.services.ranking_svc import HotKeyRanker
from hotkeys.services.reddit_svc import RedditHotService
from hotkeys.services.scheduler_svc import SchedulerService
from hotkeys.services.trends_svc import GoogleTrendsService
from hotkeys.services.twitter_svc import TwitterTrendsService

__all__ = [
    "CollectorService",
    "GoogleTrendsService",
    "HotKeyPersistenceService",
    "HotKeyRanker",
    "QualityScorer",
    "RedditHotService",
    "RedditOAuthClient",
    "SchedulerService",
    "TwitterTrendsService",
]
