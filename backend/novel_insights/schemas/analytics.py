from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from novel_insights.models import (
    MetricType,
    RecommendationType,
    PatternType,
    AnalyticsMetric,
    AdminRecommendation,
    ReadingPattern,
)

# JSON-compatible metadata attached to metrics, recommendations and patterns
Metadata = Dict[str, Any]

PRIORITY_LABELS = {1: "Low", 2: "Medium", 3: "High"}

# Display formats keyed by the "unit" metadata written with each metric
UNIT_FORMATS = {
    "minutes": "{:.1f} min",
    "percent": "{:.1f}%",
    "users": "{:.0f} users",
    "chapters": "{:.1f} chapters",
    "reads": "{:.0f} reads",
}


def _coerce_metadata(value: Any) -> Metadata:
    if value is None:
        return {}
    return value


# ----------------------------
# Derived records
# ----------------------------

class Metric(BaseModel):
    metric_type: MetricType
    name: str
    value: float = Field(ge=0.0)
    computed_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: Metadata = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, value: Any) -> Metadata:
        return _coerce_metadata(value)

    @classmethod
    def from_model(cls, row: AnalyticsMetric) -> "Metric":
        return cls(
            metric_type=MetricType(row.metric_type),
            name=row.metric_name or "",
            value=row.metric_value or 0.0,
            computed_at=row.calculated_at,
            metadata=row.meta,
        )

    @property
    def formatted_value(self) -> str:
        """
        Display string for the value.

        The "unit" metadata wins; the metric type only decides the format
        for rows recorded without one.
        """
        unit = self.metadata.get("unit")
        if unit in UNIT_FORMATS:
            return UNIT_FORMATS[unit].format(self.value)
        if self.metric_type == MetricType.ENGAGEMENT:
            return f"{self.value:.1f} min"
        if self.metric_type == MetricType.POPULARITY:
            return f"{self.value:.0f}"
        if self.metric_type in (MetricType.RETENTION, MetricType.ABANDONMENT):
            return f"{self.value:.1f}%"
        if self.metric_type == MetricType.READING_SPEED:
            return f"{self.value:.0f} words/min"
        return f"{self.value:.2f}"


class Recommendation(BaseModel):
    id: Optional[int] = None
    recommendation_type: RecommendationType
    title: str
    description: str = ""
    priority: int = Field(default=1, ge=1, le=3)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    is_read: bool = False
    is_implemented: bool = False
    metadata: Metadata = Field(default_factory=dict)
    # Set by the engine after the store call; None when never offered to a store
    saved: Optional[bool] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, value: Any) -> Metadata:
        return _coerce_metadata(value)

    @model_validator(mode="after")
    def implemented_implies_read(self) -> "Recommendation":
        if self.is_implemented:
            self.is_read = True
        return self

    @classmethod
    def from_model(cls, row: AdminRecommendation) -> "Recommendation":
        return cls(
            id=row.id,
            recommendation_type=RecommendationType(row.recommendation_type),
            title=row.title or "",
            description=row.description or "",
            priority=row.priority,
            confidence=row.confidence_score,
            created_at=row.created_at,
            is_read=bool(row.is_read),
            is_implemented=bool(row.is_implemented),
            metadata=row.meta,
        )

    @property
    def priority_text(self) -> str:
        return PRIORITY_LABELS.get(self.priority, "Unknown")

    @property
    def confidence_text(self) -> str:
        return f"{self.confidence * 100:.0f}%"


class Pattern(BaseModel):
    id: Optional[int] = None
    pattern_type: PatternType
    name: str
    value: str = ""
    frequency: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    identified_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: Metadata = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, value: Any) -> Metadata:
        return _coerce_metadata(value)

    @classmethod
    def from_model(cls, row: ReadingPattern) -> "Pattern":
        return cls(
            id=row.id,
            pattern_type=PatternType(row.pattern_type),
            name=row.pattern_name or "",
            value=row.pattern_value or "",
            frequency=row.frequency or 0,
            confidence=row.confidence,
            identified_at=row.identified_at,
            metadata=row.meta,
        )

    @property
    def is_reliable(self) -> bool:
        """Patterns at 70% confidence or above are shown as reliable."""
        return self.confidence >= 0.7

    @property
    def confidence_text(self) -> str:
        return f"{self.confidence * 100:.0f}%"


# ----------------------------
# Aggregate rows returned by the reader
# ----------------------------

class NovelReadCount(BaseModel):
    novel_id: int
    title: str
    author: str = ""
    rating: float = 0.0
    chapter_count: int = 0
    read_count: int = 0


class GenreStats(BaseModel):
    genre: str
    novel_count: int = 0
    read_count: int = 0
    avg_rating: float = 0.0


class AuthorStats(BaseModel):
    author: str
    novel_count: int = 0
    read_count: int = 0
    avg_rating: float = 0.0


class GenreDemandRow(BaseModel):
    genre: str
    novel_count: int = 0
    user_interest: int = 0
    read_count: int = 0


class AuthorEngagementRow(BaseModel):
    author: str
    novel_count: int = 0
    read_count: int = 0
    avg_rating: float = 0.0
    unique_readers: int = 0


class LowRatedNovelRow(BaseModel):
    novel_id: int
    title: str
    rating: float
    dropped_count: int = 0
    total_in_library: int = 0


class LengthBucketRow(BaseModel):
    category: str
    novel_count: int = 0
    read_count: int = 0
    completed_count: int = 0


class TagStatsRow(BaseModel):
    tag_name: str
    novel_count: int = 0
    total_votes: int = 0


class CompletionDistribution(BaseModel):
    total: int = 0
    completed: int = 0
    reading: int = 0
    dropped: int = 0
    plan_to_read: int = 0


class GeneralStats(BaseModel):
    total_users: int = 0
    total_novels: int = 0
    total_chapters: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0
    total_in_libraries: int = 0
    total_genres: int = 0


# ----------------------------
# API responses
# ----------------------------

class RecommendationCounts(BaseModel):
    pending: int = 0
    read: int = 0
    implemented: int = 0


class AnalysisSummary(BaseModel):
    metrics_recorded: int = 0
    recommendations_generated: int = 0
    recommendations_saved: int = 0
    patterns_identified: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None


class MetricsOverview(BaseModel):
    average_reading_time: float
    abandonment_rate: float
    active_users: int
    average_chapters_read: float
    general: GeneralStats


class Rankings(BaseModel):
    novels: List[NovelReadCount]
    genres: List[GenreStats]
    authors: List[AuthorStats]
    tags: List[TagStatsRow]


class DeleteResult(BaseModel):
    deleted: int


class RecommendationResponse(BaseModel):
    """Recommendation as returned over HTTP, with display helpers flattened in."""
    id: Optional[int] = None
    recommendation_type: RecommendationType
    title: str
    description: str
    priority: int
    priority_text: str
    confidence: float
    confidence_text: str
    created_at: datetime
    is_read: bool
    is_implemented: bool
    metadata: Metadata
    saved: Optional[bool] = None

    @classmethod
    def from_record(cls, rec: Recommendation) -> "RecommendationResponse":
        return cls(
            **rec.model_dump(),
            priority_text=rec.priority_text,
            confidence_text=rec.confidence_text,
        )
