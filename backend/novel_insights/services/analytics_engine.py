"""
Analytics engine: runs analyzers and identifiers and persists their output.

All operations share the caller's session and never raise; failures inside
an analyzer or store call are logged where they happen and show up here as
empty results or unsaved candidates.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from novel_insights.schemas.analytics import AnalysisSummary, Metric, Pattern, Recommendation
from novel_insights.services.aggregate_reader import AggregateReader
from novel_insights.services.analytics_store import MetricStore, PatternStore, RecommendationStore
from novel_insights.services.metric_calculator import MetricCalculator
from novel_insights.services.pattern_identifiers import PatternIdentifiers
from novel_insights.services.recommendation_analyzers import RecommendationAnalyzers
from novel_insights.utils.timing import log_elapsed, now_ms, time_operation

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    def __init__(self, db: Session):
        self.db = db
        reader = AggregateReader(db)
        self.calculator = MetricCalculator(db, reader)
        self.analyzers = RecommendationAnalyzers(db, reader, self.calculator)
        self.identifiers = PatternIdentifiers(db, reader)
        self.recommendations = RecommendationStore(db)
        self.patterns = PatternStore(db)
        self.metrics = MetricStore(db)

    def _main_analyzers(self) -> List[Tuple[str, Callable[[], List[Recommendation]]]]:
        return [
            ("genre_demand", self.analyzers.genre_demand),
            ("author_engagement", self.analyzers.author_engagement),
            ("low_quality", self.analyzers.low_quality),
            ("length_preference", self.analyzers.length_preference),
            ("abandonment", self.analyzers.abandonment),
        ]

    def _save_all(self, candidates: List[Recommendation]) -> int:
        saved = 0
        for rec in candidates:
            rec.saved = self.recommendations.save(rec)
            saved += int(rec.saved)
        return saved

    def generate_all_recommendations(self) -> List[Recommendation]:
        """
        Run every recommendation analyzer and save the candidates.

        Returns the candidates of the main analyzers in run order, each with
        `saved` telling whether it was new. Tag-demand candidates are saved
        too but are not part of the returned batch.
        """
        batch: List[Recommendation] = []
        for label, analyze in self._main_analyzers():
            with time_operation(f"analyzer {label}", logger.debug) as watch:
                candidates = analyze()
                saved = self._save_all(candidates)
            logger.info(
                "Analyzer %s: %d candidate(s), %d saved in %.2fms",
                label,
                len(candidates),
                saved,
                watch.elapsed_ms,
            )
            batch.extend(candidates)

        tag_candidates = self.analyzers.tag_demand()
        tag_saved = self._save_all(tag_candidates)
        logger.info("Analyzer tag_demand: %d candidate(s), %d saved", len(tag_candidates), tag_saved)

        return batch

    def identify_all_patterns(self, now: Optional[datetime] = None) -> List[Pattern]:
        """
        Identify patterns and upsert them. Returns the patterns identified.

        Every pattern of a run is stamped with the same identified_at.
        """
        identified_at = now or datetime.utcnow()
        patterns = self.identifiers.content_preference() + self.identifiers.completion_distribution()
        for pattern in patterns:
            pattern.identified_at = identified_at
        stored = sum(1 for pattern in patterns if self.patterns.save(pattern))
        logger.info("Identified %d pattern(s), %d stored", len(patterns), stored)
        return patterns

    def record_metrics(self, now: Optional[datetime] = None) -> List[Metric]:
        """Compute the metric snapshot and append it to the metric log."""
        metrics = self.calculator.compute_snapshot(now)
        stored = [metric for metric in metrics if self.metrics.save(metric)]
        logger.info("Recorded %d of %d metric(s)", len(stored), len(metrics))
        return stored

    def run_full_analysis(
        self,
        metrics: bool = True,
        recommendations: bool = True,
        patterns: bool = True,
    ) -> AnalysisSummary:
        summary = AnalysisSummary(started_at=datetime.utcnow())
        t = now_ms()

        if metrics:
            summary.metrics_recorded = len(self.record_metrics(summary.started_at))
            t = log_elapsed(t, "record_metrics", logger.info)

        if recommendations:
            batch = self.generate_all_recommendations()
            summary.recommendations_generated = len(batch)
            summary.recommendations_saved = sum(1 for rec in batch if rec.saved)
            t = log_elapsed(t, "generate_all_recommendations", logger.info)

        if patterns:
            summary.patterns_identified = len(self.identify_all_patterns(summary.started_at))
            log_elapsed(t, "identify_all_patterns", logger.info)

        summary.finished_at = datetime.utcnow()
        logger.info(
            "Analysis finished: metrics=%d, recommendations=%d (%d new), patterns=%d",
            summary.metrics_recorded,
            summary.recommendations_generated,
            summary.recommendations_saved,
            summary.patterns_identified,
        )
        return summary
