"""
Read-only aggregate queries over the reading app's catalog tables.

The reader never writes and never swallows database errors; callers
(MetricCalculator, analyzers) decide how a failed query degrades.
Per-novel counts are computed in subqueries before joining so that
reads, library entries and genres never multiply each other.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import case, desc, func
from sqlalchemy.orm import Session
import sqlalchemy as sa

from novel_insights.models import (
    Chapter,
    Genre,
    Novel,
    NovelTag,
    ReadingHistory,
    ReadingStatus,
    Review,
    TagVote,
    User,
    UserLibraryEntry,
    novel_genres,
)
from novel_insights.schemas.analytics import (
    AuthorEngagementRow,
    AuthorStats,
    CompletionDistribution,
    GeneralStats,
    GenreDemandRow,
    GenreStats,
    LengthBucketRow,
    LowRatedNovelRow,
    NovelReadCount,
    TagStatsRow,
)
from novel_insights.services.policy import LENGTH_BUCKETS, LENGTH_BUCKET_OVERFLOW


def _status_count(status: ReadingStatus):
    return func.count(case((UserLibraryEntry.reading_status == status.value, 1)))


def length_bucket_for(chapter_count: Optional[int]) -> str:
    """Label of the chapter-count bucket a novel falls into."""
    count = chapter_count or 0
    for upper_bound, label in LENGTH_BUCKETS:
        if count <= upper_bound:
            return label
    return LENGTH_BUCKET_OVERFLOW


class AggregateReader:
    """Aggregate queries used by the metric calculator and analyzers."""

    def __init__(self, db: Session):
        self.db = db

    def _reads_per_novel(self):
        return (
            self.db.query(
                ReadingHistory.novel_id.label("novel_id"),
                func.count(ReadingHistory.id).label("read_count"),
            )
            .group_by(ReadingHistory.novel_id)
            .subquery()
        )

    # ----------------------------
    # Scalars
    # ----------------------------

    def average_reading_time(self) -> float:
        value = (
            self.db.query(func.avg(ReadingHistory.reading_time))
            .filter(ReadingHistory.reading_time.isnot(None), ReadingHistory.reading_time > 0)
            .scalar()
        )
        return float(value or 0)

    def abandonment_rate(self) -> float:
        total, dropped = self.db.query(
            func.count(UserLibraryEntry.id),
            _status_count(ReadingStatus.DROPPED),
        ).one()
        if not total:
            return 0.0
        return (dropped or 0) * 100.0 / total

    def active_users_count(self, days: int = 30, now: Optional[datetime] = None) -> int:
        since = (now or datetime.utcnow()) - timedelta(days=days)
        value = (
            self.db.query(func.count(ReadingHistory.user_id.distinct()))
            .filter(ReadingHistory.read_at >= since)
            .scalar()
        )
        return int(value or 0)

    def average_chapters_read(self) -> float:
        value = (
            self.db.query(func.avg(UserLibraryEntry.last_read_chapter))
            .filter(UserLibraryEntry.last_read_chapter > 0)
            .scalar()
        )
        return float(value or 0)

    def general_stats(self) -> GeneralStats:
        db = self.db
        average_rating = db.query(func.avg(Novel.rating)).filter(Novel.rating > 0).scalar()
        return GeneralStats(
            total_users=db.query(func.count(User.id)).filter(User.role == "user").scalar() or 0,
            total_novels=db.query(func.count(Novel.id)).scalar() or 0,
            total_chapters=db.query(func.count(Chapter.id)).scalar() or 0,
            total_reviews=db.query(func.count(Review.id)).scalar() or 0,
            average_rating=float(average_rating or 0),
            total_in_libraries=db.query(func.count(UserLibraryEntry.id)).scalar() or 0,
            total_genres=db.query(func.count(Genre.id)).scalar() or 0,
        )

    # ----------------------------
    # Popularity rankings
    # ----------------------------

    def most_read_novels(self, limit: int = 10) -> List[NovelReadCount]:
        reads = self._reads_per_novel()
        read_count = func.coalesce(reads.c.read_count, 0).label("read_count")
        rows = (
            self.db.query(Novel, read_count)
            .outerjoin(reads, reads.c.novel_id == Novel.id)
            .order_by(desc(read_count), Novel.id)
            .limit(limit)
            .all()
        )
        return [
            NovelReadCount(
                novel_id=novel.id,
                title=novel.title or "",
                author=novel.author or "",
                rating=float(novel.rating or 0),
                chapter_count=novel.chapter_count or 0,
                read_count=int(count or 0),
            )
            for novel, count in rows
        ]

    def popular_genres(self, limit: int = 10) -> List[GenreStats]:
        reads = self._reads_per_novel()
        read_count = func.coalesce(func.sum(reads.c.read_count), 0).label("read_count")
        rows = (
            self.db.query(
                Genre.name,
                func.count(Novel.id).label("novel_count"),
                read_count,
                func.avg(Novel.rating).label("avg_rating"),
            )
            .join(novel_genres, novel_genres.c.genre_id == Genre.id)
            .join(Novel, Novel.id == novel_genres.c.novel_id)
            .outerjoin(reads, reads.c.novel_id == Novel.id)
            .group_by(Genre.id, Genre.name)
            .order_by(desc(read_count), Genre.id)
            .limit(limit)
            .all()
        )
        return [
            GenreStats(
                genre=name or "",
                novel_count=int(novel_count or 0),
                read_count=int(count or 0),
                avg_rating=float(avg_rating or 0),
            )
            for name, novel_count, count, avg_rating in rows
        ]

    def top_authors(self, limit: int = 10) -> List[AuthorStats]:
        reads = self._reads_per_novel()
        read_count = func.coalesce(func.sum(reads.c.read_count), 0).label("read_count")
        rows = (
            self.db.query(
                Novel.author,
                func.count(Novel.id).label("novel_count"),
                read_count,
                func.avg(Novel.rating).label("avg_rating"),
            )
            .outerjoin(reads, reads.c.novel_id == Novel.id)
            .filter(Novel.author.isnot(None), Novel.author != "")
            .group_by(Novel.author)
            .order_by(desc(read_count), func.min(Novel.id))
            .limit(limit)
            .all()
        )
        return [
            AuthorStats(
                author=author,
                novel_count=int(novel_count or 0),
                read_count=int(count or 0),
                avg_rating=float(avg_rating or 0),
            )
            for author, novel_count, count, avg_rating in rows
        ]

    def tag_stats(self, limit: int = 10) -> List[TagStatsRow]:
        """
        Active tags by name. Novel counts cover active rows only; votes
        count every vote cast on the name, including on deactivated rows.
        """
        votes = (
            self.db.query(
                NovelTag.tag_name.label("tag_name"),
                func.count(TagVote.id).label("vote_count"),
            )
            .join(TagVote, TagVote.tag_id == NovelTag.id)
            .group_by(NovelTag.tag_name)
            .subquery()
        )
        novel_count = func.count(NovelTag.novel_id.distinct()).label("novel_count")
        # one votes row per name, so max() just carries it through the group
        total_votes = func.coalesce(func.max(votes.c.vote_count), 0).label("total_votes")
        rows = (
            self.db.query(NovelTag.tag_name, novel_count, total_votes)
            .outerjoin(votes, votes.c.tag_name == NovelTag.tag_name)
            .filter(NovelTag.is_active == sa.true())
            .group_by(NovelTag.tag_name)
            .order_by(desc(novel_count), desc(total_votes), NovelTag.tag_name)
            .limit(limit)
            .all()
        )
        return [
            TagStatsRow(tag_name=name or "", novel_count=int(novels or 0), total_votes=int(total or 0))
            for name, novels, total in rows
        ]

    # ----------------------------
    # Analyzer inputs
    # ----------------------------

    def genre_demand(self) -> List[GenreDemandRow]:
        """
        Genres with at least one read, highest reads-per-novel first.
        """
        reads = self._reads_per_novel()
        rows = (
            self.db.query(
                Genre.id,
                Genre.name,
                func.count(novel_genres.c.novel_id),
                func.coalesce(func.sum(reads.c.read_count), 0),
            )
            .outerjoin(novel_genres, novel_genres.c.genre_id == Genre.id)
            .outerjoin(reads, reads.c.novel_id == novel_genres.c.novel_id)
            .group_by(Genre.id, Genre.name)
            .order_by(Genre.id)
            .all()
        )

        interest: Dict[int, int] = dict(
            self.db.query(
                novel_genres.c.genre_id,
                func.count(UserLibraryEntry.user_id.distinct()),
            )
            .join(UserLibraryEntry, UserLibraryEntry.novel_id == novel_genres.c.novel_id)
            .group_by(novel_genres.c.genre_id)
            .all()
        )

        result = [
            GenreDemandRow(
                genre=name or "",
                novel_count=int(novel_count or 0),
                user_interest=int(interest.get(genre_id, 0)),
                read_count=int(read_count or 0),
            )
            for genre_id, name, novel_count, read_count in rows
            if read_count
        ]
        # sorted() is stable, so equal ratios keep genre id order
        return sorted(
            result,
            key=lambda row: row.read_count / row.novel_count if row.novel_count else row.read_count,
            reverse=True,
        )

    def author_engagement(self) -> List[AuthorEngagementRow]:
        """Authors with at least one read, most read first."""
        reads = self._reads_per_novel()
        read_count = func.coalesce(func.sum(reads.c.read_count), 0).label("read_count")
        rows = (
            self.db.query(
                Novel.author,
                func.count(Novel.id),
                read_count,
                func.avg(Novel.rating),
            )
            .outerjoin(reads, reads.c.novel_id == Novel.id)
            .filter(Novel.author.isnot(None), Novel.author != "")
            .group_by(Novel.author)
            .having(func.coalesce(func.sum(reads.c.read_count), 0) > 0)
            .order_by(desc(read_count), func.min(Novel.id))
            .all()
        )

        readers: Dict[str, int] = dict(
            self.db.query(Novel.author, func.count(ReadingHistory.user_id.distinct()))
            .join(ReadingHistory, ReadingHistory.novel_id == Novel.id)
            .filter(Novel.author.isnot(None), Novel.author != "")
            .group_by(Novel.author)
            .all()
        )

        return [
            AuthorEngagementRow(
                author=author,
                novel_count=int(novel_count or 0),
                read_count=int(count or 0),
                avg_rating=float(avg_rating or 0),
                unique_readers=int(readers.get(author, 0)),
            )
            for author, novel_count, count, avg_rating in rows
        ]

    def low_rated_novels(self, rating_below: float = 3.5) -> List[LowRatedNovelRow]:
        """Rated novels under the threshold that sit in at least one library, worst first."""
        rows = (
            self.db.query(
                Novel.id,
                Novel.title,
                Novel.rating,
                _status_count(ReadingStatus.DROPPED),
                func.count(UserLibraryEntry.id),
            )
            .join(UserLibraryEntry, UserLibraryEntry.novel_id == Novel.id)
            .filter(Novel.rating > 0, Novel.rating < rating_below)
            .group_by(Novel.id, Novel.title, Novel.rating)
            .order_by(Novel.rating.asc(), Novel.id)
            .all()
        )
        return [
            LowRatedNovelRow(
                novel_id=novel_id,
                title=title or "",
                rating=float(rating or 0),
                dropped_count=int(dropped or 0),
                total_in_library=int(total or 0),
            )
            for novel_id, title, rating, dropped, total in rows
        ]

    def length_buckets(self) -> List[LengthBucketRow]:
        """Reads and completions grouped by chapter-count bucket, most read first."""
        reads = self._reads_per_novel()
        completed = (
            self.db.query(
                UserLibraryEntry.novel_id.label("novel_id"),
                func.count(UserLibraryEntry.id).label("completed_count"),
            )
            .filter(UserLibraryEntry.reading_status == ReadingStatus.COMPLETED.value)
            .group_by(UserLibraryEntry.novel_id)
            .subquery()
        )
        rows = (
            self.db.query(
                Novel.chapter_count,
                func.coalesce(reads.c.read_count, 0),
                func.coalesce(completed.c.completed_count, 0),
            )
            .outerjoin(reads, reads.c.novel_id == Novel.id)
            .outerjoin(completed, completed.c.novel_id == Novel.id)
            .order_by(Novel.id)
            .all()
        )

        buckets: Dict[str, LengthBucketRow] = {}
        for chapter_count, read_count, completed_count in rows:
            label = length_bucket_for(chapter_count)
            bucket = buckets.setdefault(label, LengthBucketRow(category=label))
            bucket.novel_count += 1
            bucket.read_count += int(read_count or 0)
            bucket.completed_count += int(completed_count or 0)

        return sorted(buckets.values(), key=lambda b: b.read_count, reverse=True)

    def completion_distribution(self) -> CompletionDistribution:
        total, completed, reading, dropped, plan_to_read = self.db.query(
            func.count(UserLibraryEntry.id),
            _status_count(ReadingStatus.COMPLETED),
            _status_count(ReadingStatus.READING),
            _status_count(ReadingStatus.DROPPED),
            _status_count(ReadingStatus.PLAN_TO_READ),
        ).one()
        return CompletionDistribution(
            total=total or 0,
            completed=completed or 0,
            reading=reading or 0,
            dropped=dropped or 0,
            plan_to_read=plan_to_read or 0,
        )
