"""SQLModel database engine and session management."""
from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, create_engine, Session
from backoffice.core.config import settings

# Import models so SQLModel.metadata knows about all tables
import backoffice.models.category  # noqa: F401
import backoffice.models.catalog  # noqa: F401
import backoffice.models.quotation  # noqa: F401
import backoffice.models.finance  # noqa: F401

# Request handlers run in FastAPI's threadpool, so the SQLite connection must
# be shareable across threads.
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {},
    echo=False,
)


def create_db_and_tables() -> None:
    """Create all tables defined in SQLModel models."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """FastAPI dependency: yields a SQLModel session."""
    with Session(engine) as session:
        yield session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any failure."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
