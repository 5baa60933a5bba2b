from __future__ import annotations

from urllib.parse import urlparse

from hotkeys.domain.models import RawSignal, ScoredSignal, SourceTag


class QualityScorer:
    """Additive heuristic that gives hot keyword candidates a stable ranking order."""

    SOURCE_TRUST: dict[SourceTag, int] = {
        SourceTag.GOOGLE_TRENDS: 4,
        SourceTag.TWITTER: 3,
        SourceTag.REDDIT: 2,
    }
    UNKNOWN_SOURCE_TRUST = 1

    def keyword_points(self, keyword: str) -> int:
        points = 0
        if len(keyword) > 5:
            points += 2
        if len(keyword) > 10:
            points += 1
        return points

    def description_points(self, description: str) -> int:
        points = 0
        if len(description) > 10:
            points += 3
        if len(description) > 30:
            points += 2
        return points

    def source_points(self, source: SourceTag | str | None) -> int:
        try:
            tag = SourceTag(source)
        except ValueError:
            return self.UNKNOWN_SOURCE_TRUST
        return self.SOURCE_TRUST.get(tag, self.UNKNOWN_SOURCE_TRUST)

    @staticmethod
    def is_well_formed_url(url: str | None) -> bool:
        if not url or not isinstance(url, str):
            return False
        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def score(self, signal: RawSignal) -> int:
        """Score a signal. Each rule contributes independently."""
        score = self.keyword_points(signal.keyword or "")
        score += self.description_points(signal.description or "")
        score += self.source_points(signal.source)

        metrics = signal.aux_metrics
        if any(value is not None for value in (metrics.numeric_score, metrics.volume, metrics.traffic)):
            score += 1
        if self.is_well_formed_url(metrics.url):
            score += 1
        return score

    def score_signal(self, signal: RawSignal) -> ScoredSignal:
        return ScoredSignal.model_validate({**signal.model_dump(), "quality_score": self.score(signal)})

    def score_all(self, signals: list[RawSignal]) -> list[ScoredSignal]:
        return [self.score_signal(signal) for signal in signals]
