from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, JSON, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import sqlalchemy as sa
from novel_insights.database import Base


class ReadingStatus(str, enum.Enum):
    READING = "reading"
    COMPLETED = "completed"
    DROPPED = "dropped"
    PLAN_TO_READ = "plan_to_read"


class MetricType(str, enum.Enum):
    ENGAGEMENT = "engagement"
    POPULARITY = "popularity"
    RETENTION = "retention"
    ABANDONMENT = "abandonment"
    READING_SPEED = "reading_speed"


class RecommendationType(str, enum.Enum):
    GENRE = "genre"
    AUTHOR = "author"
    QUALITY = "quality"
    CONTENT = "content"
    TAG_DEMAND = "tag_demand"
    # Accepted for rows written by older clients; no analyzer emits it
    TIMING = "timing"


class PatternType(str, enum.Enum):
    TIME_PREFERENCE = "time_preference"
    CONTENT_PREFERENCE = "content_preference"
    ENGAGEMENT_PATTERN = "engagement_pattern"
    ABANDONMENT_PATTERN = "abandonment_pattern"
    COMPLETION_PATTERN = "completion_pattern"


class RecommendationStatus(str, enum.Enum):
    PENDING = "pending"
    READ = "read"
    IMPLEMENTED = "implemented"
    ALL = "all"


# ----------------------------
# Catalog tables (owned by the reading app, read-only here)
# ----------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    role = Column(String, nullable=False, default="user")
    created_at = Column(DateTime, default=datetime.utcnow)


novel_genres = sa.Table(
    "novel_genres",
    Base.metadata,
    Column("novel_id", Integer, ForeignKey("novels.id"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id"), primary_key=True),
)


class Novel(Base):
    __tablename__ = "novels"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    author = Column(String, nullable=True)
    synopsis = Column(Text, nullable=True)
    status = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    chapter_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    genres = relationship("Genre", secondary=novel_genres, back_populates="novels")
    chapters = relationship("Chapter", back_populates="novel")


class Genre(Base):
    __tablename__ = "genres"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    # Relationships
    novels = relationship("Novel", secondary=novel_genres, back_populates="genres")


class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(Integer, primary_key=True)
    novel_id = Column(Integer, ForeignKey("novels.id"), nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)
    title = Column(String, nullable=True)

    # Relationships
    novel = relationship("Novel", back_populates="chapters")


class ReadingHistory(Base):
    __tablename__ = "reading_history"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    novel_id = Column(Integer, ForeignKey("novels.id"), nullable=False, index=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id"), nullable=True)
    reading_time = Column(Integer, nullable=True)  # minutes spent on the chapter
    read_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class UserLibraryEntry(Base):
    __tablename__ = "user_library"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    novel_id = Column(Integer, ForeignKey("novels.id"), nullable=False, index=True)
    reading_status = Column(String, nullable=False, default=ReadingStatus.PLAN_TO_READ.value)
    last_read_chapter = Column(Integer, nullable=False, default=0)
    added_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "novel_id", name="uq_user_library_user_novel"),
    )


class NovelTag(Base):
    __tablename__ = "novel_tags"

    id = Column(Integer, primary_key=True)
    novel_id = Column(Integer, ForeignKey("novels.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    tag_name = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class TagVote(Base):
    __tablename__ = "tag_votes"

    id = Column(Integer, primary_key=True)
    tag_id = Column(Integer, ForeignKey("novel_tags.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("tag_id", "user_id", name="uq_tag_votes_tag_user"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    novel_id = Column(Integer, ForeignKey("novels.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ----------------------------
# Analytics tables (written only by the analytics engine)
# ----------------------------

class AnalyticsMetric(Base):
    """
    Append-only metric log. Every computation run inserts new rows.
    """
    __tablename__ = "analytics_metrics"

    id = Column(Integer, primary_key=True)
    metric_type = Column(String, nullable=False, index=True)
    metric_name = Column(String, nullable=False)
    metric_value = Column(Float, nullable=False, default=0.0)
    calculated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)


class AdminRecommendation(Base):
    """
    Curator-facing recommendation.

    (recommendation_type, title) is unique among rows that are not yet
    implemented; implemented rows fall outside the partial index.
    """
    __tablename__ = "admin_recommendations"

    id = Column(Integer, primary_key=True)
    recommendation_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(Integer, nullable=False, default=1)
    confidence_score = Column(Float, nullable=False, default=0.5)
    is_read = Column(Boolean, nullable=False, default=False)
    is_implemented = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    meta = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        sa.CheckConstraint("priority IN (1, 2, 3)", name="ck_admin_recommendations_priority"),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_admin_recommendations_confidence",
        ),
    )


# Shared by the index definition and by ON CONFLICT so both render identically
OPEN_RECOMMENDATION_WHERE = AdminRecommendation.__table__.c.is_implemented == sa.false()

sa.Index(
    "uq_admin_recommendations_open_type_title",
    AdminRecommendation.__table__.c.recommendation_type,
    AdminRecommendation.__table__.c.title,
    unique=True,
    postgresql_where=OPEN_RECOMMENDATION_WHERE,
    sqlite_where=OPEN_RECOMMENDATION_WHERE,
)


class ReadingPattern(Base):
    """
    Continuously refined observation, one row per (pattern_type, pattern_name).
    """
    __tablename__ = "reading_patterns"

    id = Column(Integer, primary_key=True)
    pattern_type = Column(String, nullable=False)
    pattern_name = Column(String, nullable=False)
    pattern_value = Column(Text, nullable=False, default="")
    frequency = Column(Integer, nullable=False, default=0)
    confidence = Column(Float, nullable=False, default=0.5)
    identified_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    meta = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("pattern_type", "pattern_name", name="uq_reading_patterns_type_name"),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_reading_patterns_confidence"),
    )
