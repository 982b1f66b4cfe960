from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from analysis.models import VideoRecord
from analysis.normalize import extract_video_id, normalize_video_rows


def test_studio_export_rows_are_rescaled():
    rows = [
        {
            "Content": "https://www.youtube.com/shorts/abcdefghijk",
            "Video title": "Sourdough in 60 seconds",
            "Video publish time": "Mar 3, 2025",
            "Duration": "45",
            "Views": "12,345",
            "Impressions": "200,000",
            "Impressions click-through rate (%)": "4.5",
            "Average percentage viewed (%)": "52.1",
            "Subscribers gained": "31",
        },
        {"Video title": "Total", "Subscribers gained": "1,204", "Views": "999999"},
        {"Video title": "", "Views": "10"},
    ]

    records, subscribers = normalize_video_rows(rows)

    assert subscribers == 1204
    assert len(records) == 1
    video = records[0]
    assert video.video_id == "abcdefghijk"
    assert video.views == 12345
    assert video.impressions == 200000
    assert video.ctr == pytest.approx(0.045)
    assert video.retention == pytest.approx(0.521)
    assert video.format == "short"
    assert video.publish_date == datetime(2025, 3, 3, tzinfo=timezone.utc)
    assert video.channel == "Main Channel"


def test_snake_case_rows_keep_fractions():
    rows = [
        {
            "video_id": "https://www.youtube.com/watch?v=zyxwvutsrqp",
            "title": "Full garden tour",
            "publish_date": "2025-03-01T10:00:00Z",
            "views": 800,
            "ctr": 0.05,
            "retention": 0.35,
            "duration": 30,
            "channel": {"name": "Backyard Co"},
        }
    ]

    records, subscribers = normalize_video_rows(rows)

    assert subscribers == 0
    video = records[0]
    assert video.video_id == "zyxwvutsrqp"
    assert video.ctr == 0.05
    assert video.retention == 0.35
    # /watch?v= URL wins over the short duration
    assert video.format == "long"
    assert video.channel == "Backyard Co"


def test_duration_and_explicit_type_infer_format():
    records, _ = normalize_video_rows([
        {"title": "Quick tip", "duration": 50},
        {"title": "Deep dive", "duration": 50, "type": "video"},
        {"title": "Explicit short", "Type": "SHORTS"},
    ])
    assert [r.format for r in records] == ["short", "long", "short"]


def test_unparseable_dates_keep_row():
    records, _ = normalize_video_rows([{"title": "Undated", "publish_date": "sometime soon"}])
    assert records[0].publish_date is None


def test_none_input():
    assert normalize_video_rows(None) == ([], 0)


def test_extract_video_id():
    assert extract_video_id("https://youtu.be/abcdefghijk") == "abcdefghijk"
    assert extract_video_id("abcdefghijk") == "abcdefghijk"
    assert extract_video_id("not a video") is None


def test_rates_above_one_are_rejected():
    with pytest.raises(ValidationError):
        VideoRecord(title="Raw export", ctr=4.5)


def test_naive_publish_date_is_utc():
    video = VideoRecord(title="Naive", publish_date=datetime(2025, 1, 1, 8, 0))
    assert video.publish_date.tzinfo == timezone.utc


def test_low_studio_percentages_are_still_rescaled():
    records, _ = normalize_video_rows([
        {
            "Video title": "Low CTR clip",
            "Impressions click-through rate (%)": "0.8",
            "Average percentage viewed (%)": "0.9",
        }
    ])
    video = records[0]
    assert video.ctr == pytest.approx(0.008)
    assert video.retention == pytest.approx(0.009)


def test_fraction_keys_are_clamped():
    records, _ = normalize_video_rows([{"title": "Bad fraction", "ctr": 4.5, "retention": -0.1}])
    assert records[0].ctr == 1.0
    assert records[0].retention == 0.0


def test_colon_durations_are_parsed():
    records, _ = normalize_video_rows([
        {"Video title": "Short clip", "Duration": "0:45"},
        {"Video title": "Tutorial", "Duration": "12:05"},
        {"Video title": "Livestream", "Duration": "1:02:03"},
        {"Video title": "Plain seconds", "Duration": "90"},
    ])
    assert [r.duration for r in records] == [45.0, 725.0, 3723.0, 90.0]
    assert records[0].format == "short"
    assert records[1].format == "long"
