"""
Database configuration and session management
"""

from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
import structlog

from chalkboard.core.config import get_settings
from chalkboard.core.errors import InternalError

logger = structlog.get_logger(__name__)
settings = get_settings()


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    }


engine = create_engine(
    settings.DATABASE_URL.replace("postgresql://", "postgresql+psycopg2://"),
    echo=settings.DEBUG,
    pool_pre_ping=True,
    **_engine_options(settings.DATABASE_URL),
)

# Session factory
session_maker = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,
)


def init_db():
    """Create database tables"""
    import chalkboard.models  # noqa: F401  register every table on the metadata

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created")


def get_session() -> Iterator[Session]:
    """Dependency to get database session"""
    with session_maker() as session:
        yield session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run a unit of work as one all-or-nothing transaction.

    Commits when the block finishes, then expires every loaded instance:
    conditional UPDATEs bypass the identity map, so later reads in the same
    session must go back to the database. Any exception rolls the whole
    unit back; store failures are logged and re-raised as
    ``InternalError`` so no driver detail leaks to callers.
    """
    try:
        yield session
        session.commit()
        session.expire_all()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back after store failure: {e}")
        raise InternalError("Database operation failed") from e
    except Exception:
        session.rollback()
        raise
