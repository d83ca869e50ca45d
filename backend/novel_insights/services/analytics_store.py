"""
Persistence for metrics, recommendations and reading patterns.

Recommendations and patterns are written with single-statement upserts so
two concurrent runs cannot both insert the same key:

- recommendations: INSERT ... ON CONFLICT DO NOTHING against the partial
  unique index on (recommendation_type, title) of unimplemented rows.
  A duplicate is skipped and reported as "not saved".
- patterns: INSERT ... ON CONFLICT (pattern_type, pattern_name) DO UPDATE,
  refreshing value, confidence, frequency, identified_at and metadata.

Every method commits its own work and never raises: failures roll back,
are logged, and return False / 0 / [].
"""
import logging
from typing import List, Optional, Union

from sqlalchemy import case, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import sqlalchemy as sa

from novel_insights.models import (
    OPEN_RECOMMENDATION_WHERE,
    AdminRecommendation,
    AnalyticsMetric,
    MetricType,
    PatternType,
    ReadingPattern,
    RecommendationStatus,
    RecommendationType,
)
from novel_insights.schemas.analytics import Metric, Pattern, Recommendation, RecommendationCounts

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session, table: sa.Table):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert is not supported on the '{dialect}' dialect")


def _status_filter(status: Union[RecommendationStatus, str]):
    """
    WHERE clause for a status filter; None means "all rows".

    Raises ValueError for an unknown filter.
    """
    status = RecommendationStatus(status)
    if status == RecommendationStatus.PENDING:
        return sa.and_(AdminRecommendation.is_read == sa.false(), AdminRecommendation.is_implemented == sa.false())
    if status == RecommendationStatus.READ:
        return sa.and_(AdminRecommendation.is_read == sa.true(), AdminRecommendation.is_implemented == sa.false())
    if status == RecommendationStatus.IMPLEMENTED:
        return AdminRecommendation.is_implemented == sa.true()
    return None


class RecommendationStore:
    def __init__(self, db: Session):
        self.db = db

    def save(self, rec: Recommendation) -> bool:
        """
        Insert the recommendation unless an unimplemented one with the same
        (type, title) exists. Returns True only when a row was inserted.
        """
        values = {
            "recommendation_type": rec.recommendation_type.value,
            "title": rec.title,
            "description": rec.description,
            "priority": rec.priority,
            "confidence_score": rec.confidence,
            "is_read": rec.is_read,
            "is_implemented": rec.is_implemented,
            "created_at": rec.created_at,
            "metadata": rec.metadata,
        }
        try:
            table = AdminRecommendation.__table__
            stmt = (
                _dialect_insert(self.db, table)
                .values(values)
                .on_conflict_do_nothing(
                    index_elements=["recommendation_type", "title"],
                    index_where=OPEN_RECOMMENDATION_WHERE,
                )
                .returning(table.c.id)
            )
            new_id = self.db.execute(stmt).scalar_one_or_none()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(
                "Failed to save recommendation: type=%s, title=%s, error=%s",
                rec.recommendation_type.value,
                rec.title,
                e,
                exc_info=True,
            )
            return False

        if new_id is None:
            logger.debug("Duplicate recommendation ignored: %s", rec.title)
            return False

        rec.id = new_id
        return True

    def exists(self, recommendation_type: RecommendationType, title: str) -> bool:
        """True when an unimplemented recommendation holds this (type, title)."""
        try:
            count = (
                self.db.query(func.count(AdminRecommendation.id))
                .filter(
                    AdminRecommendation.recommendation_type == RecommendationType(recommendation_type).value,
                    AdminRecommendation.title == title,
                    AdminRecommendation.is_implemented == sa.false(),
                )
                .scalar()
            )
            return bool(count)
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to check duplicate recommendation: %s", e, exc_info=True)
            return False

    def get(self, recommendation_id: int) -> Optional[Recommendation]:
        try:
            row = self.db.get(AdminRecommendation, recommendation_id)
            return Recommendation.from_model(row) if row else None
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to load recommendation %s: %s", recommendation_id, e, exc_info=True)
            return None

    def list_by_status(
        self,
        status: Union[RecommendationStatus, str] = RecommendationStatus.ALL,
        limit: int = 100,
    ) -> List[Recommendation]:
        """Highest priority first, newest first within a priority."""
        try:
            query = self.db.query(AdminRecommendation)
            clause = _status_filter(status)
            if clause is not None:
                query = query.filter(clause)
            rows = (
                query.order_by(
                    AdminRecommendation.priority.desc(),
                    AdminRecommendation.created_at.desc(),
                    AdminRecommendation.id.desc(),
                )
                .limit(limit)
                .all()
            )
            return [Recommendation.from_model(row) for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to list recommendations (status=%s): %s", status, e, exc_info=True)
            return []

    def list_unread(self) -> List[Recommendation]:
        try:
            rows = (
                self.db.query(AdminRecommendation)
                .filter(AdminRecommendation.is_read == sa.false())
                .order_by(AdminRecommendation.priority.desc(), AdminRecommendation.created_at.desc())
                .all()
            )
            return [Recommendation.from_model(row) for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to list unread recommendations: %s", e, exc_info=True)
            return []

    def list_all(self, limit: int = 100) -> List[Recommendation]:
        """Newest first regardless of status."""
        try:
            rows = (
                self.db.query(AdminRecommendation)
                .order_by(AdminRecommendation.created_at.desc(), AdminRecommendation.id.desc())
                .limit(limit)
                .all()
            )
            return [Recommendation.from_model(row) for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to list recommendations: %s", e, exc_info=True)
            return []

    def _update(self, recommendation_id: int, action: str, values: dict, *criteria) -> bool:
        try:
            updated = (
                self.db.query(AdminRecommendation)
                .filter(AdminRecommendation.id == recommendation_id, *criteria)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
            return updated > 0
        except IntegrityError:
            # Reverting would collide with an open recommendation holding the same key
            self.db.rollback()
            logger.warning(
                "Cannot %s recommendation %s: an open recommendation with the same type and title exists",
                action,
                recommendation_id,
            )
            return False
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to %s recommendation %s: %s", action, recommendation_id, e, exc_info=True)
            return False

    def mark_read(self, recommendation_id: int) -> bool:
        return self._update(recommendation_id, "mark read", {"is_read": True})

    def mark_unread(self, recommendation_id: int) -> bool:
        """Back to pending. Implemented recommendations stay read."""
        return self._update(
            recommendation_id,
            "mark unread",
            {"is_read": False},
            AdminRecommendation.is_implemented == sa.false(),
        )

    def mark_implemented(self, recommendation_id: int) -> bool:
        return self._update(recommendation_id, "mark implemented", {"is_implemented": True, "is_read": True})

    def unmark_implemented(self, recommendation_id: int) -> bool:
        """Back to read; the read flag is kept."""
        return self._update(recommendation_id, "unmark implemented", {"is_implemented": False})

    def delete_by_status(self, status: Union[RecommendationStatus, str]) -> int:
        """Delete matching rows and return how many went. Unknown filters delete nothing."""
        try:
            clause = _status_filter(status)
        except ValueError:
            logger.warning("Refusing to delete recommendations with unknown filter %r", status)
            return 0

        try:
            query = self.db.query(AdminRecommendation)
            if clause is not None:
                query = query.filter(clause)
            deleted = query.delete(synchronize_session=False)
            self.db.commit()
            return deleted
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to delete recommendations (status=%s): %s", status, e, exc_info=True)
            return 0

    def counts(self) -> RecommendationCounts:
        try:
            pending, read, implemented = self.db.query(
                func.count(case((_status_filter(RecommendationStatus.PENDING), 1))),
                func.count(case((_status_filter(RecommendationStatus.READ), 1))),
                func.count(case((_status_filter(RecommendationStatus.IMPLEMENTED), 1))),
            ).one()
            return RecommendationCounts(pending=pending or 0, read=read or 0, implemented=implemented or 0)
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to count recommendations: %s", e, exc_info=True)
            return RecommendationCounts()


class PatternStore:
    def __init__(self, db: Session):
        self.db = db

    def save(self, pattern: Pattern) -> bool:
        """Insert the pattern, or refresh the existing row with the same (type, name)."""
        values = {
            "pattern_type": pattern.pattern_type.value,
            "pattern_name": pattern.name,
            "pattern_value": pattern.value,
            "frequency": pattern.frequency,
            "confidence": pattern.confidence,
            "identified_at": pattern.identified_at,
            "metadata": pattern.metadata,
        }
        try:
            stmt = _dialect_insert(self.db, ReadingPattern.__table__).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["pattern_type", "pattern_name"],
                set_={
                    "pattern_value": stmt.excluded["pattern_value"],
                    "confidence": stmt.excluded["confidence"],
                    "frequency": stmt.excluded["frequency"],
                    "identified_at": stmt.excluded["identified_at"],
                    "metadata": stmt.excluded["metadata"],
                },
            )
            self.db.execute(stmt)
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning(
                "Failed to save pattern: type=%s, name=%s, error=%s",
                pattern.pattern_type.value,
                pattern.name,
                e,
                exc_info=True,
            )
            return False

    def exists(self, pattern_type: PatternType, name: str) -> bool:
        try:
            count = (
                self.db.query(func.count(ReadingPattern.id))
                .filter(
                    ReadingPattern.pattern_type == PatternType(pattern_type).value,
                    ReadingPattern.pattern_name == name,
                )
                .scalar()
            )
            return bool(count)
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to check duplicate pattern: %s", e, exc_info=True)
            return False

    def list(self, pattern_type: Optional[PatternType] = None, limit: int = 50) -> List[Pattern]:
        """Most confident first, newest first within a confidence level."""
        try:
            query = self.db.query(ReadingPattern)
            if pattern_type is not None:
                query = query.filter(ReadingPattern.pattern_type == PatternType(pattern_type).value)
            rows = (
                query.order_by(ReadingPattern.confidence.desc(), ReadingPattern.identified_at.desc())
                .limit(limit)
                .all()
            )
            return [Pattern.from_model(row) for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to list patterns: %s", e, exc_info=True)
            return []

    def delete_all(self) -> int:
        try:
            deleted = self.db.query(ReadingPattern).delete(synchronize_session=False)
            self.db.commit()
            return deleted
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to delete patterns: %s", e, exc_info=True)
            return 0


class MetricStore:
    """Append-only metric log."""

    def __init__(self, db: Session):
        self.db = db

    def save(self, metric: Metric) -> bool:
        try:
            self.db.add(
                AnalyticsMetric(
                    metric_type=metric.metric_type.value,
                    metric_name=metric.name,
                    metric_value=metric.value,
                    calculated_at=metric.computed_at,
                    meta=metric.metadata,
                )
            )
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to save metric %s: %s", metric.name, e, exc_info=True)
            return False

    def recent(self, metric_type: Optional[MetricType] = None, limit: int = 50) -> List[Metric]:
        try:
            query = self.db.query(AnalyticsMetric)
            if metric_type is not None:
                query = query.filter(AnalyticsMetric.metric_type == MetricType(metric_type).value)
            rows = query.order_by(AnalyticsMetric.calculated_at.desc(), AnalyticsMetric.id.desc()).limit(limit).all()
            return [Metric.from_model(row) for row in rows]
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to load metrics: %s", e, exc_info=True)
            return []
