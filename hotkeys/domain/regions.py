from __future__ import annotations

from hotkeys.domain.models import AreaTag

# Twitter "Where On Earth" identifiers
WOEID_AREAS: dict[str, AreaTag] = {
    "1": AreaTag.GLOBAL,
    "23424977": AreaTag.UNITED_STATES,
    "2151330": AreaTag.CHINA,
}

SUBREDDIT_AREAS: dict[str, AreaTag] = {
    "popular": AreaTag.GLOBAL,
    "worldnews": AreaTag.GLOBAL,
    "news": AreaTag.UNITED_STATES,
    "europe": AreaTag.EUROPE,
    "asia": AreaTag.ASIA,
    "china": AreaTag.CHINA,
}

GEO_AREAS: dict[str, AreaTag] = {
    "US": AreaTag.UNITED_STATES,
    "CN": AreaTag.CHINA,
    "GB": AreaTag.EUROPE,
    "DE": AreaTag.EUROPE,
    "FR": AreaTag.EUROPE,
    "JP": AreaTag.ASIA,
    "IN": AreaTag.ASIA,
    "AU": AreaTag.OCEANIA,
    "BR": AreaTag.SOUTH_AMERICA,
    "ZA": AreaTag.AFRICA,
}

DEFAULT_SUBREDDITS: tuple[str, ...] = ("popular", "worldnews", "news", "technology")
DEFAULT_GEOS: tuple[str, ...] = ("US", "CN", "GB", "DE", "JP", "IN")


class RegionResolver:
    """Maps upstream locality identifiers onto area buckets."""

    def from_woeid(self, woeid: str) -> AreaTag:
        return WOEID_AREAS.get(str(woeid), AreaTag.GLOBAL)

    def from_subreddit(self, subreddit: str) -> AreaTag:
        return SUBREDDIT_AREAS.get(subreddit.lower(), AreaTag.GLOBAL)

    def from_geo(self, geo: str) -> AreaTag:
        return GEO_AREAS.get(geo.upper(), AreaTag.GLOBAL)
