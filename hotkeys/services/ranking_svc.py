from __future__ import annotations

import logging
import re

from hotkeys.core.config import HOT_KEY_MAX_LENGTH
from hotkeys.domain.models import DedupKey, RawSignal, ScoredSignal
from hotkeys.services.normalizer import dedup_key
from hotkeys.services.quality_svc import QualityScorer

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 2

SPAM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[\d\s]+"),  # digits only
    re.compile(r"[^\w\u4e00-\u9fff]+"),  # symbols only
    re.compile(r"\s*"),  # blank
)


class HotKeyRanker:
    """
    Merges signals from every source into a ranked, duplicate-free shortlist.

    Signals describing the same topic in the same area (equal DedupKey) are
    collapsed to the best-scoring one. Ordering is deterministic: ties in
    score keep first-seen order.
    """

    def __init__(self, scorer: QualityScorer | None = None) -> None:
        self.scorer = scorer or QualityScorer()

    def is_valid(self, signal: RawSignal) -> bool:
        """Reject missing, oversized and spam-looking keywords."""
        keyword = getattr(signal, "keyword", None)
        if not keyword or not isinstance(keyword, str):
            return False
        if len(keyword) < MIN_KEYWORD_LENGTH or len(keyword) > HOT_KEY_MAX_LENGTH:
            return False
        return not any(pattern.fullmatch(keyword) for pattern in SPAM_PATTERNS)

    def reduce(self, signals: list[RawSignal], top_n: int) -> list[ScoredSignal]:
        """
        Filter, score, deduplicate, sort and truncate.

        Args:
            signals: Output of all adapters, in any order.
            top_n: Maximum number of signals to keep.

        Returns:
            At most ``top_n`` scored signals, best first. Never raises;
            degenerate input gives an empty list.
        """
        if not signals or top_n <= 0:
            return []

        best: dict[DedupKey, ScoredSignal] = {}
        valid_count = 0
        for signal in signals:
            try:
                if not self.is_valid(signal):
                    continue
                valid_count += 1
                key = dedup_key(signal)
                scored = self.scorer.score_signal(signal)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed signal %r: %s", signal, exc)
                continue

            existing = best.get(key)
            if existing is None or scored.quality_score > existing.quality_score:
                best[key] = scored

        # dict preserves first-seen order and sorted() is stable
        ranked = sorted(best.values(), key=lambda item: item.quality_score, reverse=True)
        result = ranked[:top_n]

        logger.info(
            "Ranked hot keys: raw %d -> valid %d -> unique %d -> final %d",
            len(signals),
            valid_count,
            len(best),
            len(result),
        )
        return result
