"""Pytest configuration for backend tests."""
import os
from datetime import datetime, timedelta
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Import database components
from novel_insights.database import Base, get_db

# Import the entire models module to ensure all models are registered with Base.metadata
# This must happen before create_all() so that all table definitions are available
import novel_insights.models  # noqa: F401
from novel_insights.models import (
    Genre,
    Novel,
    NovelTag,
    ReadingHistory,
    ReadingStatus,
    TagVote,
    User,
    UserLibraryEntry,
)


# TEST_DATABASE_URL may point at a Postgres test database; never the production DATABASE_URL.
# Without it the suite runs against an in-memory SQLite database.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def engine():
    """
    Create a test database engine with every table created.

    SQLite runs in memory on a single shared connection (StaticPool). The
    pysqlite driver is switched to explicit BEGIN so SAVEPOINTs nest inside
    the per-test transaction instead of committing it.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(test_engine, "connect")
        def do_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(test_engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")
    else:
        test_engine = create_engine(
            TEST_DATABASE_URL,
            pool_pre_ping=True,
            echo=False,
        )

    # Debug assertion: verify tables are registered
    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import novel_insights.models? All model classes must be imported before create_all()."
        )

    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """
    Create a database session for each test.

    Uses an outer transaction that is rolled back after each test. The code
    under test commits and rolls back freely: those become savepoint
    releases and savepoint rollbacks inside the outer transaction.
    """
    connection = engine.connect()

    # Start a transaction
    transaction = connection.begin()

    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    yield session

    # Cleanup: rollback transaction and close
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db: Session) -> TestClient:
    """TestClient whose requests share the test's session."""
    from novel_insights.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _read(db: Session, user: User, novel: Novel, minutes, when: datetime) -> None:
    db.add(ReadingHistory(user_id=user.id, novel_id=novel.id, reading_time=minutes, read_at=when))


@pytest.fixture
def catalog(db: Session) -> dict:
    """
    A small reading catalog.

    - Isekai: "Sword Road" (Ana, 4.5, 40 ch, 6 reads), "Mana Tides" (Ana, 4.1, 80 ch, 4 reads)
    - Romance: "Paper Hearts" (Ben, 2.5, 30 ch, 2 reads)
    - 5 library entries: 1 completed, 1 reading, 2 dropped, 1 plan_to_read
    - tag "Regression" on Sword Road with 5 votes
    """
    now = datetime.utcnow() - timedelta(hours=1)

    users = [User(username=f"reader{i}", email=f"reader{i}@example.com") for i in range(1, 6)]
    db.add_all(users)

    isekai = Genre(name="Isekai")
    romance = Genre(name="Romance")
    sword_road = Novel(title="Sword Road", author="Ana", rating=4.5, chapter_count=40, genres=[isekai])
    mana_tides = Novel(title="Mana Tides", author="Ana", rating=4.1, chapter_count=80, genres=[isekai])
    paper_hearts = Novel(title="Paper Hearts", author="Ben", rating=2.5, chapter_count=30, genres=[romance])
    db.add_all([isekai, romance, sword_road, mana_tides, paper_hearts])
    db.flush()

    u1, u2, u3, u4, u5 = users

    # Sword Road: 6 reads
    for minutes in (10, 10, 10):
        _read(db, u1, sword_road, minutes, now)
    for minutes in (10, 10, 30):
        _read(db, u2, sword_road, minutes, now)
    # Mana Tides: 4 reads
    for minutes in (10, 10):
        _read(db, u2, mana_tides, minutes, now)
    for minutes in (10, None):
        _read(db, u3, mana_tides, minutes, now)
    # Paper Hearts: 2 reads
    _read(db, u3, paper_hearts, 0, now)
    _read(db, u1, paper_hearts, 10, now)

    db.add_all([
        UserLibraryEntry(user_id=u1.id, novel_id=sword_road.id,
                         reading_status=ReadingStatus.COMPLETED.value, last_read_chapter=40),
        UserLibraryEntry(user_id=u2.id, novel_id=sword_road.id,
                         reading_status=ReadingStatus.READING.value, last_read_chapter=10),
        UserLibraryEntry(user_id=u3.id, novel_id=paper_hearts.id,
                         reading_status=ReadingStatus.DROPPED.value, last_read_chapter=5),
        UserLibraryEntry(user_id=u1.id, novel_id=paper_hearts.id,
                         reading_status=ReadingStatus.DROPPED.value, last_read_chapter=3),
        UserLibraryEntry(user_id=u2.id, novel_id=mana_tides.id,
                         reading_status=ReadingStatus.PLAN_TO_READ.value, last_read_chapter=0),
    ])

    tag = NovelTag(novel_id=sword_road.id, user_id=u1.id, tag_name="Regression")
    db.add(tag)
    db.flush()
    db.add_all([TagVote(tag_id=tag.id, user_id=user.id) for user in users])

    db.commit()

    return {
        "users": users,
        "genres": {"Isekai": isekai, "Romance": romance},
        "novels": {"Sword Road": sword_road, "Mana Tides": mana_tides, "Paper Hearts": paper_hearts},
        "tag": tag,
    }
