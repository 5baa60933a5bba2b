"""Keyword canonicalisation used to detect the same topic across sources."""
from __future__ import annotations

import re

from hotkeys.domain.models import DedupKey, RawSignal

# Anything that is not a word character, whitespace or a CJK unified ideograph.
_DISALLOWED_CHARS = re.compile(r"[^\w\s\u4e00-\u9fff]")
_WHITESPACE_RUN = re.compile(r"\s+")
TRUNCATION_SUFFIX = "..."


def normalize(keyword: object) -> str:
    """Lower-case, strip punctuation and collapse whitespace. Never raises."""
    if not isinstance(keyword, str):
        return ""
    text = _DISALLOWED_CHARS.sub("", keyword.lower().strip())
    return _WHITESPACE_RUN.sub(" ", text).strip()


def dedup_key(signal: RawSignal) -> DedupKey:
    return DedupKey(signal.area, normalize(signal.keyword))


def truncate_text(text: object, max_length: int) -> str:
    """Cut text to max_length characters, marking the cut with an ellipsis."""
    if not text or not isinstance(text, str):
        return ""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX
