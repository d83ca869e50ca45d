"""
Admin analytics endpoints: live metrics, the "Generate" action and the
recommendation/pattern lists curators work through.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from novel_insights.core.config import settings
from novel_insights.database import get_db
from novel_insights.models import MetricType, PatternType, RecommendationStatus
from novel_insights.schemas.analytics import (
    AnalysisSummary,
    DeleteResult,
    Metric,
    MetricsOverview,
    Pattern,
    Rankings,
    RecommendationCounts,
    RecommendationResponse,
)
from novel_insights.services.analytics_engine import AnalyticsEngine
from novel_insights.services.analytics_store import MetricStore, PatternStore, RecommendationStore
from novel_insights.services.metric_calculator import MetricCalculator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _parse_status(raw: str) -> RecommendationStatus:
    try:
        return RecommendationStatus(raw)
    except ValueError:
        allowed = ", ".join(s.value for s in RecommendationStatus)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status '{raw}'. Expected one of: {allowed}",
        )


# ----------------------------
# Metrics
# ----------------------------

@router.get("/metrics/overview", response_model=MetricsOverview)
async def metrics_overview(db: Session = Depends(get_db)):
    calculator = MetricCalculator(db)
    return MetricsOverview(
        average_reading_time=calculator.average_reading_time(),
        abandonment_rate=calculator.abandonment_rate(),
        active_users=calculator.active_users(),
        average_chapters_read=calculator.average_chapters_read(),
        general=calculator.general_stats(),
    )


@router.get("/metrics/rankings", response_model=Rankings)
async def metrics_rankings(
    limit: int = Query(settings.ANALYTICS_TOP_N, ge=1, le=100),
    db: Session = Depends(get_db),
):
    calculator = MetricCalculator(db)
    return Rankings(
        novels=calculator.most_read_novels(limit),
        genres=calculator.popular_genres(limit),
        authors=calculator.top_authors(limit),
        tags=calculator.popular_tags(limit),
    )


@router.post("/metrics/snapshot", response_model=List[Metric])
async def record_metric_snapshot(db: Session = Depends(get_db)):
    return AnalyticsEngine(db).record_metrics()


@router.get("/metrics", response_model=List[Metric])
async def list_metrics(
    metric_type: Optional[MetricType] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return MetricStore(db).recent(metric_type, limit)


# ----------------------------
# Generate
# ----------------------------

@router.post("/generate", response_model=AnalysisSummary)
async def generate(db: Session = Depends(get_db)):
    """Run recommendation analyzers and pattern identifiers on current data."""
    summary = AnalyticsEngine(db).run_full_analysis(metrics=False)
    logger.info(
        "Generate requested: %d recommendation(s), %d new",
        summary.recommendations_generated,
        summary.recommendations_saved,
    )
    return summary


# ----------------------------
# Recommendations
# ----------------------------

@router.get("/recommendations", response_model=List[RecommendationResponse])
async def list_recommendations(
    status_filter: str = Query(RecommendationStatus.ALL.value, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    parsed = _parse_status(status_filter)
    records = RecommendationStore(db).list_by_status(parsed, limit)
    return [RecommendationResponse.from_record(rec) for rec in records]


@router.get("/recommendations/counts", response_model=RecommendationCounts)
async def recommendation_counts(db: Session = Depends(get_db)):
    return RecommendationStore(db).counts()


def _transition(db: Session, recommendation_id: int, action: str) -> RecommendationResponse:
    store = RecommendationStore(db)
    if store.get(recommendation_id) is None:
        raise HTTPException(status_code=404, detail="Recommendation not found")

    changed = getattr(store, action)(recommendation_id)
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Recommendation state could not be changed",
        )
    return RecommendationResponse.from_record(store.get(recommendation_id))


@router.post("/recommendations/{recommendation_id}/read", response_model=RecommendationResponse)
async def mark_read(recommendation_id: int, db: Session = Depends(get_db)):
    return _transition(db, recommendation_id, "mark_read")


@router.post("/recommendations/{recommendation_id}/unread", response_model=RecommendationResponse)
async def mark_unread(recommendation_id: int, db: Session = Depends(get_db)):
    return _transition(db, recommendation_id, "mark_unread")


@router.post("/recommendations/{recommendation_id}/implemented", response_model=RecommendationResponse)
async def mark_implemented(recommendation_id: int, db: Session = Depends(get_db)):
    return _transition(db, recommendation_id, "mark_implemented")


@router.post("/recommendations/{recommendation_id}/unimplemented", response_model=RecommendationResponse)
async def unmark_implemented(recommendation_id: int, db: Session = Depends(get_db)):
    return _transition(db, recommendation_id, "unmark_implemented")


@router.delete("/recommendations", response_model=DeleteResult)
async def delete_recommendations(
    status_filter: str = Query(..., alias="status"),
    db: Session = Depends(get_db),
):
    parsed = _parse_status(status_filter)
    return DeleteResult(deleted=RecommendationStore(db).delete_by_status(parsed))


# ----------------------------
# Patterns
# ----------------------------

@router.get("/patterns", response_model=List[Pattern])
async def list_patterns(
    pattern_type: Optional[PatternType] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return PatternStore(db).list(pattern_type, limit)


@router.delete("/patterns", response_model=DeleteResult)
async def delete_patterns(db: Session = Depends(get_db)):
    return DeleteResult(deleted=PatternStore(db).delete_all())
