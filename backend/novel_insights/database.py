from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from novel_insights.core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

logger.info("NOVEL_INSIGHTS DATABASE_URL = %s", settings.get_masked_database_url())

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync endpoints in a threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    connect_args=connect_args,
)

# Slow query logging (DEBUG mode only)
if settings.DEBUG:
    SLOW_QUERY_THRESHOLD_MS = 200.0

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        """Store query start time before execution."""
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        """Log slow queries after execution."""
        if hasattr(context, "_query_start_time"):
            elapsed_ms = (time.perf_counter() - context._query_start_time) * 1000
            if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
                statement_first_line = statement.split("\n")[0].strip()[:100]
                logger.warning(
                    f"SLOW_QUERY: {elapsed_ms:.2f}ms - {statement_first_line}"
                )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Dev convenience: ensure the analytics and catalog tables exist on SQLite.

    On any other backend the Alembic migrations are the source of truth,
    so create_all() is skipped with a warning.
    """
    if not settings.DATABASE_URL.startswith("sqlite"):
        import warnings
        warnings.warn(
            "Non-SQLite database detected. Skipping Base.metadata.create_all(). "
            "Use 'alembic upgrade head' for schema changes.",
            UserWarning
        )
        return

    # Import all models to ensure they're registered with Base.metadata
    from novel_insights import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
