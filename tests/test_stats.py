from datetime import date, timedelta

from streamboost.models import StreamStatus
from streamboost.services.stats import period_summary, stats_for_date, stats_for_range


def test_range_defaults_to_current_month(db, pro_streamer, make_stream, now):
    make_stream(pro_streamer, now + timedelta(days=1), 60)
    make_stream(pro_streamer, now + timedelta(days=2), 30, status=StreamStatus.CANCELLED)
    make_stream(pro_streamer, now + timedelta(days=30), 60)  # December
    stats = stats_for_range(db, pro_streamer.id, now=now)
    assert stats["start_date"] == date(2025, 11, 1)
    assert stats["end_date"] == date(2025, 11, 30)
    assert stats["total_streams"] == 2
    # Range totals include every status
    assert stats["total_hours"] == 1.5
    assert stats["streams_by_status"] == {"scheduled": 1, "cancelled": 1}
    assert stats["daily_limit_hours"] == 5


def test_date_stats(db, pro_streamer, make_stream, tomorrow, now):
    make_stream(pro_streamer, tomorrow + timedelta(hours=9), 45)
    make_stream(pro_streamer, tomorrow + timedelta(hours=15), 45, status=StreamStatus.CANCELLED)
    stats = stats_for_date(db, pro_streamer.id, tomorrow.date(), now)
    assert stats["used_hours"] == 0.75
    assert stats["remaining_hours"] == 4.25
    assert len(stats["streams"]) == 2


def test_period_summary(db, basic_streamer, make_stream, tomorrow, now):
    make_stream(basic_streamer, tomorrow, 90)
    summary = period_summary(db, basic_streamer.id, now)
    assert summary["has_active_subscription"] is True
    assert summary["remaining_days"] == 29
    assert summary["total_available_hours"] == 60
    assert summary["total_used_hours"] == 1.5
    assert summary["remaining_total_hours"] == 58.5


def test_period_summary_without_subscription(db, make_streamer, now):
    summary = period_summary(db, make_streamer().id, now)
    assert summary["has_active_subscription"] is False
    assert summary["total_available_hours"] == 0
    assert summary["remaining_days"] == 0
