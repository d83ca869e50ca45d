"""
Scalar engagement/retention/popularity metrics derived from aggregate rows.

Every public method has a total contract: a failed query is logged, the
session is rolled back, and the caller gets a zero (or an empty list).
"""
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from novel_insights.core.config import settings
from novel_insights.models import MetricType
from novel_insights.schemas.analytics import (
    AuthorStats,
    GeneralStats,
    GenreStats,
    Metric,
    NovelReadCount,
    TagStatsRow,
)
from novel_insights.services.aggregate_reader import AggregateReader

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetricCalculator:
    def __init__(self, db: Session, reader: Optional[AggregateReader] = None):
        self.db = db
        self.reader = reader or AggregateReader(db)

    def _safe(self, label: str, compute: Callable[[], T], default: T) -> T:
        try:
            return compute()
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to calculate %s: %s", label, e, exc_info=True)
            return default

    def average_reading_time(self) -> float:
        """Mean minutes per reading event, ignoring empty and non-positive times."""
        return self._safe("average reading time", self.reader.average_reading_time, 0.0)

    def abandonment_rate(self) -> float:
        """Percentage (0-100) of library entries marked dropped."""
        return self._safe("abandonment rate", self.reader.abandonment_rate, 0.0)

    def active_users(self, days: Optional[int] = None) -> int:
        window = days or settings.ANALYTICS_ACTIVE_WINDOW_DAYS
        return self._safe("active users", lambda: self.reader.active_users_count(window), 0)

    def average_chapters_read(self) -> float:
        return self._safe("average chapters read", self.reader.average_chapters_read, 0.0)

    def most_read_novels(self, limit: int = 10) -> List[NovelReadCount]:
        return self._safe("most read novels", lambda: self.reader.most_read_novels(limit), [])

    def popular_genres(self, limit: int = 10) -> List[GenreStats]:
        return self._safe("popular genres", lambda: self.reader.popular_genres(limit), [])

    def top_authors(self, limit: int = 10) -> List[AuthorStats]:
        return self._safe("top authors", lambda: self.reader.top_authors(limit), [])

    def popular_tags(self, limit: int = 5) -> List[TagStatsRow]:
        return self._safe("popular tags", lambda: self.reader.tag_stats(limit), [])

    def general_stats(self) -> GeneralStats:
        return self._safe("general stats", self.reader.general_stats, GeneralStats())

    def compute_snapshot(self, now: Optional[datetime] = None) -> List[Metric]:
        """
        Build the metric rows appended by one computation run.

        All rows of a run share the same computed_at.
        """
        computed_at = now or datetime.utcnow()
        window = settings.ANALYTICS_ACTIVE_WINDOW_DAYS

        def metric(metric_type: MetricType, name: str, value: float, **metadata: Any) -> Metric:
            return Metric(
                metric_type=metric_type,
                name=name,
                value=round(max(value, 0.0), 2),
                computed_at=computed_at,
                metadata=metadata,
            )

        metrics = [
            metric(MetricType.ENGAGEMENT, "Average reading time", self.average_reading_time(), unit="minutes"),
            metric(MetricType.ABANDONMENT, "Abandonment rate", self.abandonment_rate(), unit="percent"),
            metric(MetricType.RETENTION, "Active users", self.active_users(window), unit="users", window_days=window),
            metric(MetricType.ENGAGEMENT, "Average chapters read", self.average_chapters_read(), unit="chapters"),
        ]

        top_novels = self.most_read_novels(1)
        if top_novels:
            top = top_novels[0]
            metrics.append(
                metric(
                    MetricType.POPULARITY,
                    "Most read novel",
                    top.read_count,
                    novel_id=top.novel_id,
                    title=top.title,
                    unit="reads",
                )
            )

        return metrics
