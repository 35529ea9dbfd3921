import logging
import uuid
from typing import Generator, List, Optional, Tuple

from sqlalchemy import and_, create_engine, inspect, or_, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from confessions.config import settings
from confessions.moderation import APPROVED
from confessions.utils import utc_timestamp

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from confessions.models import Confession  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and the confessions table exists, False otherwise.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        if not inspect(engine).has_table("confessions"):
            logger.error("Database schema not applied: 'confessions' table not found")
            return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Confession Repository Functions
# =============================================================================

def create_confession(
    db: Session,
    message: str,
    sentiment: Optional[str] = None,
    policy_version: str = "",
):
    """
    Store an approved confession.

    Records are append-only: there is no update or delete counterpart.

    Args:
        db: Database session
        message: Message that already passed moderation
        sentiment: Sentiment label from the sentiment service, if any
        policy_version: Moderation policy version that approved the message

    Returns:
        The stored Confession, or None if the insert failed
    """
    from confessions.models import Confession

    confession = Confession(
        id=str(uuid.uuid4()),
        message=message,
        created_at=utc_timestamp(),
        status=APPROVED,
        sentiment=sentiment,
        policy_version=policy_version,
    )

    try:
        db.add(confession)
        db.commit()
        db.refresh(confession)
        logger.info(f"Confession created: {confession.id}")
        return confession
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create confession: {e}")
        return None


def list_confessions(
    db: Session,
    limit: int = 50,
    cursor: Optional[dict] = None,
) -> Tuple[List, Optional[dict]]:
    """
    List approved confessions, newest first.

    Args:
        db: Database session
        limit: Maximum number of confessions to return
        cursor: Key of the last confession of the previous page

    Returns:
        Tuple of (confessions, cursor for the next page or None)
    """
    from confessions.models import Confession

    query = db.query(Confession).filter(Confession.status == APPROVED)

    if cursor:
        created_at, seq = cursor.get("createdAt"), cursor.get("seq")
        query = query.filter(
            or_(
                Confession.created_at < created_at,
                and_(Confession.created_at == created_at, Confession.seq < seq),
            )
        )

    # Fetch one extra row to know whether another page exists
    rows = (
        query.order_by(Confession.created_at.desc(), Confession.seq.desc())
        .limit(limit + 1)
        .all()
    )
    items = rows[:limit]

    next_cursor = None
    if len(rows) > limit:
        last = items[-1]
        next_cursor = {"createdAt": last.created_at, "seq": last.seq}

    logger.info(f"Retrieved {len(items)} confessions (limit={limit}, more={next_cursor is not None})")
    return items, next_cursor
