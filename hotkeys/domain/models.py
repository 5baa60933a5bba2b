from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AreaTag(str, Enum):
    """Coarse geographic bucket a hot keyword belongs to."""

    GLOBAL = "global"
    UNITED_STATES = "united_states"
    CHINA = "china"
    EUROPE = "europe"
    ASIA = "asia"
    AFRICA = "africa"
    OCEANIA = "oceania"
    SOUTH_AMERICA = "south_america"


class SourceTag(str, Enum):
    """Upstream that produced a signal."""

    TWITTER = "twitter"
    REDDIT = "reddit"
    GOOGLE_TRENDS = "google_trends"


class AuxMetrics(BaseModel):
    """Signal-specific metadata used for scoring only, never for identity."""

    numeric_score: float | None = None
    volume: float | None = None
    traffic: str | None = None
    url: str | None = None


class RawSignal(BaseModel):
    """One trending item as emitted by a source adapter."""

    keyword: str
    description: str = ""
    area: AreaTag = AreaTag.GLOBAL
    source: SourceTag
    aux_metrics: AuxMetrics = Field(default_factory=AuxMetrics)
    collected_at: datetime = Field(default_factory=utc_now)


class ScoredSignal(RawSignal):
    """Signal with its run-time quality score. Never persisted."""

    quality_score: int


class DedupKey(NamedTuple):
    area: AreaTag
    normalized_keyword: str


class HotKeyRecord(BaseModel):
    """Persisted row: one distinct trending topic per area."""

    id: str
    area: AreaTag
    hot_key: str
    hot_key_desc: str = ""
    created_at: datetime
    updated_at: datetime


class UpsertResult(BaseModel):
    inserted: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def persisted(self) -> int:
        return self.inserted + self.updated


class SourceReport(BaseModel):
    source: SourceTag
    collected: int = 0
    error: str | None = None


class CollectionSummary(BaseModel):
    """Outcome of one pipeline run, returned to operators and HTTP callers."""

    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int = 0
    sources: dict[str, SourceReport] = Field(default_factory=dict)
    total_collected: int = 0
    total_retained: int = 0
    total_persisted: int = 0
    upsert: UpsertResult = Field(default_factory=UpsertResult)
    errors: list[str] = Field(default_factory=list)
    aborted: bool = False
