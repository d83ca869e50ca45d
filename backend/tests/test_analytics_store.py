"""Tests for recommendation dedup/lifecycle, pattern upsert and the metric log."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from novel_insights.models import (
    AdminRecommendation,
    MetricType,
    PatternType,
    ReadingPattern,
    RecommendationStatus,
    RecommendationType,
)
from novel_insights.schemas.analytics import Metric, Pattern, Recommendation
from novel_insights.services.analytics_store import MetricStore, PatternStore, RecommendationStore


def make_recommendation(title: str = "Add more Isekai novels", **overrides) -> Recommendation:
    fields = dict(
        recommendation_type=RecommendationType.GENRE,
        title=title,
        description="Isekai is in demand",
        priority=3,
        confidence=0.65,
        metadata={"genre": "Isekai", "ratio": 15.0},
    )
    fields.update(overrides)
    return Recommendation(**fields)


@pytest.fixture
def store(db: Session) -> RecommendationStore:
    return RecommendationStore(db)


def test_save_then_duplicate_is_skipped(db: Session, store: RecommendationStore):
    first = make_recommendation()
    assert store.save(first) is True
    assert first.id is not None

    assert store.save(make_recommendation(description="different text")) is False
    assert db.query(AdminRecommendation).count() == 1
    assert store.exists(RecommendationType.GENRE, "Add more Isekai novels")


def test_same_title_different_type_is_not_a_duplicate(db: Session, store: RecommendationStore):
    assert store.save(make_recommendation("Shared title"))
    assert store.save(make_recommendation("Shared title", recommendation_type=RecommendationType.CONTENT))
    assert db.query(AdminRecommendation).count() == 2


def test_implemented_recommendations_are_exempt_from_dedup(db: Session, store: RecommendationStore):
    rec = make_recommendation()
    store.save(rec)
    assert store.mark_implemented(rec.id)
    assert not store.exists(RecommendationType.GENRE, rec.title)

    again = make_recommendation()
    assert store.save(again) is True
    assert db.query(AdminRecommendation).count() == 2

    # Reverting would create two open rows with the same key
    assert store.unmark_implemented(rec.id) is False
    reloaded = store.get(rec.id)
    assert reloaded.is_implemented is True
    assert store.get(again.id).is_implemented is False


def test_metadata_round_trips(store: RecommendationStore):
    rec = make_recommendation(metadata={"genre": "Isekai", "ratio": 15.0, "samples": [{"title": "A"}]})
    store.save(rec)

    loaded = store.get(rec.id)
    assert loaded.metadata == {"genre": "Isekai", "ratio": 15.0, "samples": [{"title": "A"}]}


def test_lifecycle_transitions(store: RecommendationStore):
    rec = make_recommendation()
    store.save(rec)

    assert store.mark_read(rec.id)
    assert store.get(rec.id).is_read is True

    assert store.mark_unread(rec.id)
    assert store.get(rec.id).is_read is False

    assert store.mark_implemented(rec.id)
    loaded = store.get(rec.id)
    assert loaded.is_implemented is True
    assert loaded.is_read is True

    # Implemented recommendations stay read
    assert store.mark_unread(rec.id) is False

    assert store.unmark_implemented(rec.id)
    loaded = store.get(rec.id)
    assert loaded.is_implemented is False
    assert loaded.is_read is True


def test_transitions_on_missing_id(store: RecommendationStore):
    assert store.mark_read(424242) is False
    assert store.mark_implemented(424242) is False
    assert store.get(424242) is None


def _seed_statuses(store: RecommendationStore):
    pending = make_recommendation("pending one", priority=1)
    read = make_recommendation("read one", priority=2)
    implemented = make_recommendation("implemented one", priority=3)
    for rec in (pending, read, implemented):
        store.save(rec)
    store.mark_read(read.id)
    store.mark_implemented(implemented.id)
    return pending, read, implemented


def test_status_filters_and_counts(store: RecommendationStore):
    _seed_statuses(store)

    assert [r.title for r in store.list_by_status(RecommendationStatus.PENDING)] == ["pending one"]
    assert [r.title for r in store.list_by_status("read")] == ["read one"]
    assert [r.title for r in store.list_by_status(RecommendationStatus.IMPLEMENTED)] == ["implemented one"]
    # Highest priority first
    assert [r.title for r in store.list_by_status(RecommendationStatus.ALL)] == [
        "implemented one",
        "read one",
        "pending one",
    ]
    assert [r.title for r in store.list_unread()] == ["pending one"]

    counts = store.counts()
    assert (counts.pending, counts.read, counts.implemented) == (1, 1, 1)


def test_list_all_newest_first(store: RecommendationStore):
    base = datetime(2026, 3, 1)
    store.save(make_recommendation("older", created_at=base))
    store.save(make_recommendation("newer", created_at=base + timedelta(hours=1)))

    assert [r.title for r in store.list_all()] == ["newer", "older"]


def test_delete_by_status(db: Session, store: RecommendationStore):
    _seed_statuses(store)

    assert store.delete_by_status("bogus") == 0
    assert db.query(AdminRecommendation).count() == 3

    assert store.delete_by_status(RecommendationStatus.READ) == 1
    assert store.delete_by_status(RecommendationStatus.ALL) == 2
    assert db.query(AdminRecommendation).count() == 0


def test_pattern_upsert_refreshes_row(db: Session):
    patterns = PatternStore(db)
    first_seen = datetime(2026, 2, 1)
    later = first_seen + timedelta(days=7)

    assert patterns.save(
        Pattern(pattern_type=PatternType.CONTENT_PREFERENCE, name="Most popular genre",
                value="Isekai", frequency=10, confidence=0.85, identified_at=first_seen)
    )
    assert patterns.save(
        Pattern(pattern_type=PatternType.CONTENT_PREFERENCE, name="Most popular genre",
                value="Romance", frequency=14, confidence=0.85, identified_at=later,
                metadata={"genre": "Romance"})
    )

    assert db.query(ReadingPattern).count() == 1
    stored = patterns.list()[0]
    assert stored.value == "Romance"
    assert stored.frequency == 14
    assert stored.identified_at == later
    assert stored.metadata == {"genre": "Romance"}
    assert patterns.exists(PatternType.CONTENT_PREFERENCE, "Most popular genre")


def test_pattern_list_order_and_delete(db: Session):
    patterns = PatternStore(db)
    patterns.save(Pattern(pattern_type=PatternType.CONTENT_PREFERENCE, name="a", confidence=0.85))
    patterns.save(Pattern(pattern_type=PatternType.COMPLETION_PATTERN, name="b", confidence=0.95))

    assert [p.name for p in patterns.list()] == ["b", "a"]
    assert [p.name for p in patterns.list(PatternType.CONTENT_PREFERENCE)] == ["a"]
    assert patterns.delete_all() == 2
    assert patterns.list() == []


def test_metric_log_is_append_only(db: Session):
    metrics = MetricStore(db)
    first = datetime(2026, 1, 1)

    metrics.save(Metric(metric_type=MetricType.ABANDONMENT, name="Abandonment rate", value=20.0, computed_at=first))
    metrics.save(Metric(metric_type=MetricType.ABANDONMENT, name="Abandonment rate", value=25.0,
                        computed_at=first + timedelta(days=1)))
    metrics.save(Metric(metric_type=MetricType.RETENTION, name="Active users", value=3, computed_at=first))

    recent = metrics.recent(MetricType.ABANDONMENT)
    assert [m.value for m in recent] == [25.0, 20.0]
    assert len(metrics.recent()) == 3
