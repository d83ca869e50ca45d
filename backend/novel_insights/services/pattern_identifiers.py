"""Descriptive reading patterns, refreshed on every run."""
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from novel_insights.models import PatternType
from novel_insights.schemas.analytics import CompletionDistribution, GenreStats, Pattern
from novel_insights.services import policy
from novel_insights.services.aggregate_reader import AggregateReader

logger = logging.getLogger(__name__)


def identify_content_preference(genres: List[GenreStats]) -> List[Pattern]:
    if not genres:
        return []

    top = genres[0]
    return [
        Pattern(
            pattern_type=PatternType.CONTENT_PREFERENCE,
            name="Most popular genre",
            value=(
                f"The genre '{top.genre}' is the most popular with "
                f"{top.read_count} reads and an average rating of {top.avg_rating:.1f}"
            ),
            frequency=top.read_count,
            confidence=policy.CONTENT_PREFERENCE_CONFIDENCE,
            metadata={
                "genre": top.genre,
                "read_count": top.read_count,
                "avg_rating": top.avg_rating,
            },
        )
    ]


def identify_completion_distribution(dist: CompletionDistribution) -> List[Pattern]:
    if dist.total <= 0:
        return []

    def pct(count: int) -> float:
        return count / dist.total * 100

    completion_rate = pct(dist.completed)
    drop_rate = pct(dist.dropped)
    return [
        Pattern(
            pattern_type=PatternType.COMPLETION_PATTERN,
            name="Reading status distribution",
            value=(
                f"Of {dist.total} novels in libraries: "
                f"{completion_rate:.1f}% completed, "
                f"{pct(dist.reading):.1f}% reading, "
                f"{drop_rate:.1f}% dropped, "
                f"{pct(dist.plan_to_read):.1f}% planned"
            ),
            frequency=dist.total,
            confidence=policy.COMPLETION_DISTRIBUTION_CONFIDENCE,
            metadata={
                **dist.model_dump(),
                "completion_rate": completion_rate,
                "drop_rate": drop_rate,
            },
        )
    ]


class PatternIdentifiers:
    def __init__(self, db: Session, reader: Optional[AggregateReader] = None):
        self.db = db
        self.reader = reader or AggregateReader(db)

    def _run(self, label: str, identify: Callable[[], List[Pattern]]) -> List[Pattern]:
        try:
            return identify()
        except Exception as e:
            self.db.rollback()
            logger.warning("Pattern identifier %s failed: %s", label, e, exc_info=True)
            return []

    def content_preference(self) -> List[Pattern]:
        return self._run(
            "content_preference",
            lambda: identify_content_preference(self.reader.popular_genres(policy.CONTENT_PREFERENCE_TOP_N)),
        )

    def completion_distribution(self) -> List[Pattern]:
        return self._run(
            "completion_distribution",
            lambda: identify_completion_distribution(self.reader.completion_distribution()),
        )
