"""Tests for MetricCalculator and the aggregate queries behind it."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from novel_insights.models import MetricType, NovelTag, TagVote
from novel_insights.services.aggregate_reader import AggregateReader, length_bucket_for
from novel_insights.services.metric_calculator import MetricCalculator


@pytest.mark.parametrize(
    "chapters, label",
    [(0, "Short (1-50)"), (50, "Short (1-50)"), (51, "Medium (51-100)"), (200, "Long (101-200)"), (201, "Very long (200+)")],
)
def test_length_bucket_boundaries(chapters, label):
    assert length_bucket_for(chapters) == label


def test_empty_database_yields_zeros(db: Session):
    calculator = MetricCalculator(db)

    assert calculator.average_reading_time() == 0.0
    assert calculator.abandonment_rate() == 0.0
    assert calculator.active_users() == 0
    assert calculator.average_chapters_read() == 0.0
    assert calculator.most_read_novels() == []
    assert calculator.general_stats().total_novels == 0


def test_scalar_metrics(db: Session, catalog):
    calculator = MetricCalculator(db)

    # Null and zero reading times are ignored: 120 minutes over 10 events
    assert calculator.average_reading_time() == pytest.approx(12.0)
    assert calculator.abandonment_rate() == pytest.approx(40.0)
    assert calculator.active_users() == 3
    assert calculator.average_chapters_read() == pytest.approx(14.5)


def test_active_users_window(db: Session, catalog):
    reader = AggregateReader(db)
    later = datetime.utcnow() + timedelta(days=45)

    assert reader.active_users_count(days=30, now=later) == 0
    assert reader.active_users_count(days=60, now=later) == 3


def test_rankings(db: Session, catalog):
    calculator = MetricCalculator(db)

    novels = calculator.most_read_novels(2)
    assert [(n.title, n.read_count) for n in novels] == [("Sword Road", 6), ("Mana Tides", 4)]

    genres = calculator.popular_genres()
    assert [(g.genre, g.novel_count, g.read_count) for g in genres] == [("Isekai", 2, 10), ("Romance", 1, 2)]

    authors = calculator.top_authors()
    assert authors[0].author == "Ana"
    assert authors[0].novel_count == 2
    assert authors[0].read_count == 10

    tags = calculator.popular_tags()
    assert [(t.tag_name, t.novel_count, t.total_votes) for t in tags] == [("Regression", 1, 5)]


def test_tag_votes_on_deactivated_rows_still_count(db: Session, catalog):
    users = catalog["users"]
    retired = NovelTag(novel_id=catalog["novels"]["Mana Tides"].id, tag_name="Regression", is_active=False)
    hidden = NovelTag(novel_id=catalog["novels"]["Paper Hearts"].id, tag_name="Hidden Gem", is_active=False)
    db.add_all([retired, hidden])
    db.flush()
    db.add_all([TagVote(tag_id=retired.id, user_id=user.id) for user in users[:3]])
    db.add(TagVote(tag_id=hidden.id, user_id=users[0].id))
    db.commit()

    tags = AggregateReader(db).tag_stats()

    # Inactive rows add votes to the name but neither novels nor names of their own
    assert [(t.tag_name, t.novel_count, t.total_votes) for t in tags] == [("Regression", 1, 8)]


def test_general_stats(db: Session, catalog):
    stats = MetricCalculator(db).general_stats()

    assert stats.total_users == 5
    assert stats.total_novels == 3
    assert stats.total_in_libraries == 5
    assert stats.total_genres == 2
    assert stats.average_rating == pytest.approx((4.5 + 4.1 + 2.5) / 3)


def test_compute_snapshot(db: Session, catalog):
    now = datetime(2026, 1, 5, 12, 0, 0)

    metrics = MetricCalculator(db).compute_snapshot(now)

    by_name = {m.name: m for m in metrics}
    assert set(by_name) == {
        "Average reading time",
        "Abandonment rate",
        "Active users",
        "Average chapters read",
        "Most read novel",
    }
    assert all(m.computed_at == now for m in metrics)
    assert by_name["Abandonment rate"].metric_type == MetricType.ABANDONMENT
    assert {name: m.formatted_value for name, m in by_name.items()} == {
        "Average reading time": "12.0 min",
        "Abandonment rate": "40.0%",
        "Active users": "3 users",
        "Average chapters read": "14.5 chapters",
        "Most read novel": "6 reads",
    }
    assert by_name["Most read novel"].value == 6
    assert by_name["Most read novel"].metadata["title"] == "Sword Road"


def test_failed_query_degrades_to_default(db: Session, monkeypatch):
    calculator = MetricCalculator(db)

    def boom():
        raise RuntimeError("connection lost")

    monkeypatch.setattr(calculator.reader, "abandonment_rate", boom)

    assert calculator.abandonment_rate() == 0.0


def test_formatted_value_falls_back_to_metric_type():
    from novel_insights.schemas.analytics import Metric

    assert Metric(metric_type=MetricType.RETENTION, name="Retention", value=62.5).formatted_value == "62.5%"
    assert Metric(metric_type=MetricType.ENGAGEMENT, name="Session", value=8, metadata={"unit": "minutes"}).formatted_value == "8.0 min"
