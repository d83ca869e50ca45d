"""
Recommendation analyzers.

Each analyze_* function is a pure mapping from aggregate rows to zero or
more candidate recommendations; thresholds and formulas come from
services.policy. RecommendationAnalyzers binds them to an AggregateReader
and turns any failure into an empty result for that category.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from novel_insights.models import RecommendationType
from novel_insights.schemas.analytics import (
    AuthorEngagementRow,
    GenreDemandRow,
    LengthBucketRow,
    LowRatedNovelRow,
    Recommendation,
    TagStatsRow,
)
from novel_insights.services import policy
from novel_insights.services.aggregate_reader import AggregateReader
from novel_insights.services.metric_calculator import MetricCalculator

logger = logging.getLogger(__name__)


def analyze_genre_demand(rows: List[GenreDemandRow]) -> List[Recommendation]:
    """Genres read a lot relative to how few novels the catalog has for them."""
    rule = policy.GENRE_DEMAND
    recommendations = []
    for genre in rows[: int(rule.limits["top_n"])]:
        if genre.read_count <= 0 or genre.novel_count >= rule.limits["max_novels"]:
            continue
        ratio = genre.read_count / genre.novel_count if genre.novel_count > 0 else float(genre.read_count)
        recommendations.append(
            Recommendation(
                recommendation_type=RecommendationType.GENRE,
                title=f"Add more {genre.genre} novels",
                description=(
                    f"The genre '{genre.genre}' is in high demand with {genre.read_count} reads "
                    f"but only {genre.novel_count} novels available. "
                    f"Reads per novel: {ratio:.1f}. "
                    f"Expanding the catalog for this genre is recommended."
                ),
                priority=rule.priority.priority_for(ratio),
                confidence=rule.confidence.score(ratio),
                metadata={
                    "genre": genre.genre,
                    "novel_count": genre.novel_count,
                    "read_count": genre.read_count,
                    "user_interest": genre.user_interest,
                    "ratio": ratio,
                },
            )
        )
    return recommendations


def analyze_author_engagement(rows: List[AuthorEngagementRow]) -> List[Recommendation]:
    """Most-read authors whose novels are also well rated."""
    rule = policy.AUTHOR_ENGAGEMENT
    recommendations = []
    for author in rows[: int(rule.limits["top_n"])]:
        if author.read_count <= rule.limits["min_reads"] or author.avg_rating < rule.limits["min_rating"]:
            continue
        recommendations.append(
            Recommendation(
                recommendation_type=RecommendationType.AUTHOR,
                title=f"Author '{author.author}' has high engagement",
                description=(
                    f"Author '{author.author}' is very well received: "
                    f"{author.read_count} total reads, an average rating of {author.avg_rating:.1f}/5 "
                    f"and {author.unique_readers} unique readers. "
                    f"The catalog currently holds {author.novel_count} novel(s) by this author. "
                    f"Adding more of their work is recommended."
                ),
                priority=rule.priority.priority_for(author.avg_rating),
                confidence=rule.confidence.score(author.avg_rating),
                metadata={
                    "author": author.author,
                    "novel_count": author.novel_count,
                    "read_count": author.read_count,
                    "avg_rating": author.avg_rating,
                    "unique_readers": author.unique_readers,
                },
            )
        )
    return recommendations


def analyze_low_quality(rows: List[LowRatedNovelRow]) -> List[Recommendation]:
    """A single summary recommendation when low-rated novels sit in libraries."""
    if not rows:
        return []

    rule = policy.LOW_QUALITY
    avg_rating = sum(novel.rating for novel in rows) / len(rows)
    total_dropped = sum(novel.dropped_count for novel in rows)
    total_in_library = sum(novel.total_in_library for novel in rows)
    drop_rate = total_dropped / total_in_library * 100 if total_in_library > 0 else 0.0

    return [
        Recommendation(
            recommendation_type=RecommendationType.QUALITY,
            title="Low-rated novels show high abandonment",
            description=(
                f"Found {len(rows)} novels rated below {rule.limits['rating_below']}. "
                f"Average rating: {avg_rating:.1f}/5. "
                f"Abandonment rate for these novels: {drop_rate:.1f}%. "
                f"Review the quality of this content or consider removing "
                f"the worst performing novels."
            ),
            priority=rule.priority.priority_for(drop_rate),
            confidence=rule.confidence.score(),
            metadata={
                "low_rated_count": len(rows),
                "avg_rating": avg_rating,
                "drop_rate": drop_rate,
                "novels": [
                    {"title": novel.title, "rating": novel.rating}
                    for novel in rows[: int(rule.limits["sample_size"])]
                ],
            },
        )
    ]


def analyze_length_preference(rows: List[LengthBucketRow]) -> List[Recommendation]:
    """Recommend the chapter-count bucket readers read the most."""
    if not rows:
        return []

    # max() keeps the first bucket on ties
    most_popular = max(rows, key=lambda bucket: bucket.read_count)
    if most_popular.read_count <= 0:
        return []

    rule = policy.LENGTH_PREFERENCE
    completion_rate = most_popular.completed_count / most_popular.read_count * 100

    return [
        Recommendation(
            recommendation_type=RecommendationType.CONTENT,
            title=f"Readers prefer '{most_popular.category}' novels",
            description=(
                f"Length preference analysis: "
                f"'{most_popular.category}' chapter novels are the most read "
                f"with {most_popular.read_count} reads. "
                f"Completion rate: {completion_rate:.1f}%. "
                f"Prioritize novels of this length when expanding the catalog."
            ),
            priority=rule.priority.priority_for(0),
            confidence=rule.confidence.score(),
            metadata={
                "preferred_length": most_popular.category,
                "read_count": most_popular.read_count,
                "completion_rate": completion_rate,
                "all_categories": [bucket.model_dump() for bucket in rows],
            },
        )
    ]


def analyze_abandonment(abandonment_rate: float) -> List[Recommendation]:
    """Catalog-wide alert when the abandonment rate is above the threshold."""
    rule = policy.GLOBAL_ABANDONMENT
    threshold = rule.limits["threshold"]
    if abandonment_rate <= threshold:
        return []

    priority = rule.priority.priority_for(abandonment_rate)
    return [
        Recommendation(
            recommendation_type=RecommendationType.QUALITY,
            title="High abandonment rate detected",
            description=(
                f"The current abandonment rate is {abandonment_rate:.1f}%, "
                f"above the recommended threshold ({threshold:g}%). "
                f"This may point to content quality problems, the reading experience, "
                f"or novels not meeting reader expectations. "
                f"Investigate the causes and take corrective action."
            ),
            priority=priority,
            confidence=rule.confidence.score(),
            metadata={
                "abandonment_rate": abandonment_rate,
                "threshold": threshold,
                "severity": "high" if priority == policy.PRIORITY_HIGH else "medium",
            },
        )
    ]


def analyze_tag_demand(rows: List[TagStatsRow]) -> List[Recommendation]:
    """Tags with many votes but few tagged novels."""
    rule = policy.TAG_DEMAND
    recommendations = []
    for tag in rows:
        if tag.total_votes < rule.limits["min_votes"] or tag.novel_count > rule.limits["max_novels"]:
            continue
        ratio = tag.total_votes / tag.novel_count if tag.novel_count > 0 else float(tag.total_votes)
        recommendations.append(
            Recommendation(
                recommendation_type=RecommendationType.TAG_DEMAND,
                title=f"High demand: tag '{tag.tag_name}'",
                description=(
                    f"The tag '{tag.tag_name}' has {tag.total_votes} votes but only "
                    f"{tag.novel_count} novel(s). "
                    f"Readers are looking for more content with this trait."
                ),
                priority=rule.priority.priority_for(ratio),
                confidence=rule.confidence.score(tag.total_votes),
                metadata={
                    "tag": tag.tag_name,
                    "votes": tag.total_votes,
                    "novels": tag.novel_count,
                },
            )
        )
    return recommendations


class RecommendationAnalyzers:
    """
    Runs each analyzer against live aggregates.

    A failing query or analyzer contributes zero recommendations.
    """

    def __init__(
        self,
        db: Session,
        reader: Optional[AggregateReader] = None,
        calculator: Optional[MetricCalculator] = None,
    ):
        self.db = db
        self.reader = reader or AggregateReader(db)
        self.calculator = calculator or MetricCalculator(db, self.reader)

    def _run(self, label: str, analyze: Callable[[], List[Recommendation]]) -> List[Recommendation]:
        try:
            return analyze()
        except Exception as e:
            self.db.rollback()
            logger.warning("Analyzer %s failed: %s", label, e, exc_info=True)
            return []

    def genre_demand(self) -> List[Recommendation]:
        return self._run("genre_demand", lambda: analyze_genre_demand(self.reader.genre_demand()))

    def author_engagement(self) -> List[Recommendation]:
        return self._run("author_engagement", lambda: analyze_author_engagement(self.reader.author_engagement()))

    def low_quality(self) -> List[Recommendation]:
        rating_below = policy.LOW_QUALITY.limits["rating_below"]
        return self._run("low_quality", lambda: analyze_low_quality(self.reader.low_rated_novels(rating_below)))

    def length_preference(self) -> List[Recommendation]:
        return self._run("length_preference", lambda: analyze_length_preference(self.reader.length_buckets()))

    def abandonment(self) -> List[Recommendation]:
        return self._run("abandonment", lambda: analyze_abandonment(self.calculator.abandonment_rate()))

    def tag_demand(self) -> List[Recommendation]:
        top_n = int(policy.TAG_DEMAND.limits["top_n"])
        return self._run("tag_demand", lambda: analyze_tag_demand(self.reader.tag_stats(top_n)))
