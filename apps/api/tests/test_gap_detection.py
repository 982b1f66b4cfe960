from datetime import datetime, timedelta, timezone

import pytest

from analysis.classifiers import RegexTitleClassifier, default_classifier
from analysis.models import CompetitorSeries, CompetitorVideoRecord, VideoRecord
from services.gap_detection import (
    count_client_series,
    detect_all_gaps,
    detect_content_type_gaps,
    detect_format_gaps,
    detect_frequency_gaps,
    detect_series_gaps,
    detect_title_pattern_gaps,
    detect_topic_gaps,
    extract_ngrams,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)

NEUTRAL_TITLES = [
    "Morning coffee routine",
    "Garden harvest haul",
    "Rainy city walk",
    "Weekend market finds",
    "Kitchen shelf makeover",
    "Sunset drive playlist",
    "Quiet cabin retreat",
]


def _client(i, title, **overrides):
    data = {"video_id": f"c{i}", "title": title, "views": 2000, "format": "long"}
    data.update(overrides)
    return VideoRecord(**data)


def _competitor(i, title, **overrides):
    data = {
        "video_id": f"k{i}",
        "title": title,
        "views": 20000,
        "format": "long",
        "channel": "Rival Channel",
    }
    data.update(overrides)
    return CompetitorVideoRecord(**data)


@pytest.fixture
def client_videos():
    return [_client(i, title) for i, title in enumerate(NEUTRAL_TITLES[:5])]


@pytest.fixture
def tutorial_heavy_competitors():
    """30% tutorials, the rest unclassified."""
    tutorials = [
        _competitor(0, "How to prune roses", views=60000),
        _competitor(1, "How to repot succulents", views=55000),
        _competitor(2, "How to start seeds indoors", views=70000),
    ]
    others = [_competitor(3 + i, title) for i, title in enumerate(NEUTRAL_TITLES)]
    return tutorials + others


def test_format_gap_for_missing_tutorials(client_videos, tutorial_heavy_competitors):
    gaps = detect_format_gaps(client_videos, tutorial_heavy_competitors)
    gap = next(g for g in gaps if g.id == "format_tutorial")

    assert gap.type == "format"
    assert gap.evidence.client_stat == "0 videos (0%)"
    assert gap.evidence.competitor_stat == "3 videos (30%)"
    assert gap.gap_size == pytest.approx(0.9)
    assert gap.impact == "high"
    assert gap.confidence == "low"
    assert gap.effort == "medium"
    assert gap.evidence.top_examples[0].title == "How to start seeds indoors"


def test_format_gap_respects_stored_classification(client_videos):
    competitors = [
        _competitor(i, title, detected_format="challenge") for i, title in enumerate(NEUTRAL_TITLES)
    ]
    gaps = detect_format_gaps(client_videos, competitors)
    assert [g.id for g in gaps] == ["format_challenge"]
    assert gaps[0].gap_size == 1.0


def test_title_pattern_gap_for_questions(client_videos):
    competitors = [_competitor(i, f"Is this garden worth it {i}?") for i in range(4)]
    competitors += [_competitor(10 + i, title) for i, title in enumerate(NEUTRAL_TITLES[:6])]

    gaps = detect_title_pattern_gaps(client_videos, competitors)
    question = next(g for g in gaps if g.id == "pattern_question")

    assert question.effort == "low"
    assert question.evidence.competitor_stat == "4 videos (40%)"
    assert question.gap_size == pytest.approx(1.0)


def test_content_type_gap_for_missing_shorts(client_videos):
    competitors = [_competitor(i, f"Quick clip {i}", format="short", views=3000) for i in range(4)]
    competitors += [_competitor(10 + i, title) for i, title in enumerate(NEUTRAL_TITLES[:6])]

    gaps = detect_content_type_gaps(client_videos, competitors)

    assert [g.id for g in gaps] == ["type_shorts_missing"]
    assert gaps[0].type == "content_type"
    assert gaps[0].effort == "high"
    assert gaps[0].impact == "low"
    assert gaps[0].gap_size == pytest.approx(0.8)


def test_content_type_gap_for_missing_longform():
    clients = [_client(i, f"Quick clip {i}", format="short") for i in range(5)]
    clients.append(_client(5, "Full garden tour"))
    competitors = [_competitor(i, title) for i, title in enumerate(NEUTRAL_TITLES[:6])]
    competitors += [_competitor(10 + i, f"Quick clip {i}", format="short", views=3000) for i in range(4)]

    gaps = detect_content_type_gaps(clients, competitors)

    assert [g.id for g in gaps] == ["type_longform_missing"]
    gap = gaps[0]
    assert gap.effort == "high"
    assert gap.impact == "medium"
    assert gap.confidence == "medium"
    assert gap.evidence.competitor_stat == "6 long-form (60%)"
    assert gap.evidence.client_stat == "1 long-form (17%)"
    assert gap.gap_size == pytest.approx((0.6 - 1 / 6) * 2)


@pytest.mark.parametrize(
    "client_long,competitor_long",
    [
        (0, 5),  # competitor share exactly 50%
        (1, 6),  # client share exactly 20% (1 of 5)
    ],
)
def test_longform_gap_needs_both_thresholds_crossed(client_long, competitor_long):
    clients = [_client(i, f"Quick clip {i}", format="short") for i in range(5 - client_long)]
    clients += [_client(10 + i, title) for i, title in enumerate(NEUTRAL_TITLES[:client_long])]
    competitors = [_competitor(i, title) for i, title in enumerate(NEUTRAL_TITLES[:competitor_long])]
    competitors += [
        _competitor(10 + i, f"Quick clip {i}", format="short", views=3000) for i in range(10 - competitor_long)
    ]

    assert detect_content_type_gaps(clients, competitors) == []


def test_frequency_gap_compares_per_channel_average(client_videos):
    recent = NOW - timedelta(days=3)
    competitors = [
        _competitor(i, f"Upload {i}", publish_date=recent, channel=f"Rival {i % 2}") for i in range(8)
    ]
    client = [_client(0, "Only upload", publish_date=recent)] + client_videos

    gaps = detect_frequency_gaps(client, competitors, now=NOW)

    assert len(gaps) == 1
    gap = gaps[0]
    assert gap.id == "frequency_low_cadence"
    assert gap.evidence.competitor_stat == "4.0 uploads/month (avg per channel)"
    assert gap.evidence.client_stat == "1 uploads in last 30 days"
    assert gap.gap_size == 1.0
    assert gap.effort == "high"


def test_series_gap_uses_external_trend_label(client_videos):
    series = [
        CompetitorSeries(name="Garden Wars", video_count=6, avg_views=4000, performance_trend="growing"),
        CompetitorSeries(name="Plant Clinic", video_count=5, avg_views=25000, performance_trend="declining"),
        CompetitorSeries(name="Tiny Series", video_count=2, avg_views=90000, performance_trend="growing"),
        CompetitorSeries(name="Flat Series", video_count=8, avg_views=3000, performance_trend="stable"),
    ]

    gaps = detect_series_gaps(client_videos, series)

    assert len(gaps) == 1
    gap = gaps[0]
    assert gap.id == "series_missing"
    assert gap.evidence.competitor_stat == "2 growing/high-performing series"
    assert [e.title for e in gap.evidence.top_examples] == [
        "Plant Clinic (5 episodes)",
        "Garden Wars (6 episodes)",
    ]
    assert gap.gap_size == pytest.approx(0.4)


def test_series_gap_skipped_when_client_runs_series():
    client = [_client(i, f"Backyard Build Log part {i}") for i in range(3)]
    client += [_client(10 + i, f"Seed Swap Sunday week {i}") for i in range(3)]
    assert count_client_series(client) == 2

    series = [CompetitorSeries(name="Garden Wars", video_count=6, avg_views=40000)]
    assert detect_series_gaps(client, series) == []


def test_extract_ngrams_filters_stopwords_and_short_tokens():
    assert extract_ngrams("How to Grow Tomatoes in Pots!", 2) == ["grow tomatoes", "tomatoes pots"]
    assert extract_ngrams("", 2) == []


def test_topic_gaps_need_three_competitor_videos(client_videos):
    competitors = [
        _competitor(0, "Raised bed soil mix", views=30000),
        _competitor(1, "Best raised bed soil", views=40000),
        _competitor(2, "Cheap raised bed soil hack", views=20000),
        _competitor(3, "Compost tea secrets", views=90000),
        _competitor(4, "Compost tea brewing", views=80000),
    ]

    gaps = detect_topic_gaps(client_videos, competitors)
    topics = [g.title for g in gaps]

    assert 'Competitors cover "raised bed" and you don\'t' in topics
    assert 'Competitors cover "bed soil" and you don\'t' in topics
    assert all("compost tea" not in title for title in topics)
    assert all(g.evidence.client_stat == "0 videos" for g in gaps)
    assert all(len(g.evidence.top_examples) <= 3 for g in gaps)


def test_topic_gaps_skip_topics_the_client_covers():
    client = [_client(0, "My raised bed tour")]
    competitors = [_competitor(i, f"Raised bed idea {i}") for i in range(3)]
    topics = [g.title for g in detect_topic_gaps(client, competitors)]
    assert 'Competitors cover "raised bed" and you don\'t' not in topics
    assert 'Competitors cover "bed idea" and you don\'t' in topics


def test_no_competitor_videos_returns_empty_report(client_videos):
    report = detect_all_gaps(client_videos, [], now=NOW)

    assert report.gaps == []
    assert report.summary.total == 0
    assert report.no_videos is True


def test_no_competitor_channels_is_flagged(client_videos):
    report = detect_all_gaps(client_videos, None, competitor_channel_count=0, now=NOW)
    assert report.no_competitors is True
    assert report.no_videos is True


def test_detect_all_gaps_ranks_and_summarizes(client_videos, tutorial_heavy_competitors):
    report = detect_all_gaps(client_videos, tutorial_heavy_competitors, now=NOW)

    assert report.summary.total == len(report.gaps) > 0
    assert report.summary.video_count == 10
    assert report.summary.competitor_count == 1
    assert sum(report.summary.by_type.values()) == report.summary.total
    assert report.summary.top_gap_type in report.summary.by_type

    scores = [g.score for g in report.gaps]
    assert scores == sorted(scores, reverse=True)
    for gap in report.gaps:
        assert 0.0 <= gap.gap_size <= 1.0
        assert 0.0 <= gap.score <= 1.0


def test_detect_all_gaps_is_idempotent(client_videos, tutorial_heavy_competitors):
    first = detect_all_gaps(client_videos, tutorial_heavy_competitors, now=NOW).model_dump_json()
    second = detect_all_gaps(client_videos, tutorial_heavy_competitors, now=NOW).model_dump_json()
    assert first == second


def test_custom_classifier_is_pluggable(client_videos):
    class EverythingIsAReview:
        def content_format(self, title):
            return "review"

        def title_patterns(self, title):
            return []

    competitors = [_competitor(i, title) for i, title in enumerate(NEUTRAL_TITLES)]
    report = detect_all_gaps([_client(0, "x")], competitors, classifier=EverythingIsAReview(), now=NOW)
    assert not any(g.type == "format" for g in report.gaps)

    assert isinstance(default_classifier, RegexTitleClassifier)
    assert default_classifier.content_format("How to bake bread") == "tutorial"
