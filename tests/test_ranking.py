"""Tests for filtering, deduplication and top-N selection."""
from __future__ import annotations

import pytest

from hotkeys.domain.models import AreaTag, AuxMetrics, RawSignal, SourceTag
from hotkeys.services.ranking_svc import HotKeyRanker


@pytest.fixture
def ranker():
    return HotKeyRanker()


def make_signal(keyword, source=SourceTag.TWITTER, area=AreaTag.GLOBAL, description="", **metrics):
    return RawSignal(
        keyword=keyword,
        description=description,
        area=area,
        source=source,
        aux_metrics=AuxMetrics(**metrics),
    )


@pytest.mark.parametrize("search_first", [True, False])
def test_cross_source_duplicates_keep_higher_score(ranker, search_first):
    search = make_signal("ChatGPT Updates", source=SourceTag.GOOGLE_TRENDS, area=AreaTag.UNITED_STATES)
    social = make_signal("chatgpt updates", source=SourceTag.TWITTER, area=AreaTag.UNITED_STATES)
    signals = [search, social] if search_first else [social, search]

    result = ranker.reduce(signals, 10)

    assert len(result) == 1
    assert result[0].source == SourceTag.GOOGLE_TRENDS
    assert result[0].keyword == "ChatGPT Updates"


def test_all_digit_keyword_is_dropped(ranker):
    spam = make_signal(
        "12345",
        source=SourceTag.GOOGLE_TRENDS,
        description="a very long description that would score well",
        traffic="1M+",
        url="https://example.com",
    )

    assert ranker.reduce([spam], 10) == []


@pytest.mark.parametrize("keyword", ["x", "   ", "!!!", "12 34", "#@$%", "a" * 101])
def test_invalid_keywords_rejected(ranker, keyword):
    assert not ranker.is_valid(make_signal(keyword))


@pytest.mark.parametrize("keyword", ["AI", "Taylor Swift", "人工智能", "F1 2024"])
def test_valid_keywords_accepted(ranker, keyword):
    assert ranker.is_valid(make_signal(keyword))


def test_top_n_bound(ranker):
    signals = [make_signal(f"topic number {index}") for index in range(20)]

    assert len(ranker.reduce(signals, 5)) == 5
    assert len(ranker.reduce(signals, 50)) == 20


def test_degenerate_inputs_return_empty(ranker):
    assert ranker.reduce([], 10) == []
    assert ranker.reduce([make_signal("Something")], 0) == []
    assert ranker.reduce([make_signal("Something")], -1) == []


def test_output_sorted_by_score_descending(ranker):
    low = make_signal("abc", source=SourceTag.REDDIT)
    high = make_signal("Long trending keyword", source=SourceTag.GOOGLE_TRENDS, description="plenty of detail here")
    mid = make_signal("Mid keyword", source=SourceTag.TWITTER)

    result = ranker.reduce([low, high, mid], 10)

    scores = [item.quality_score for item in result]
    assert scores == sorted(scores, reverse=True)
    assert result[0].keyword == "Long trending keyword"


def test_ties_keep_first_seen_order(ranker):
    first = make_signal("Alpha topic")
    second = make_signal("Omega topic")

    result = ranker.reduce([first, second], 10)

    assert [item.keyword for item in result] == ["Alpha topic", "Omega topic"]
    assert ranker.reduce([second, first], 10)[0].keyword == "Omega topic"


def test_equal_score_duplicate_keeps_first(ranker):
    first = make_signal("Same Topic", description="first description")
    second = make_signal("same topic", description="other description")

    result = ranker.reduce([first, second], 10)

    assert len(result) == 1
    assert result[0].description == "first description"


def test_same_keyword_different_areas_both_kept(ranker):
    us = make_signal("Elections", area=AreaTag.UNITED_STATES)
    eu = make_signal("Elections", area=AreaTag.EUROPE)

    assert len(ranker.reduce([us, eu], 10)) == 2


def test_reduce_is_idempotent_on_its_output(ranker):
    signals = [
        make_signal("ChatGPT Updates", source=SourceTag.GOOGLE_TRENDS),
        make_signal("chatgpt updates"),
        make_signal("Space launch", source=SourceTag.REDDIT),
    ]

    once = ranker.reduce(signals, 10)
    twice = ranker.reduce(once, 10)

    assert [(item.keyword, item.quality_score) for item in twice] == [
        (item.keyword, item.quality_score) for item in once
    ]
