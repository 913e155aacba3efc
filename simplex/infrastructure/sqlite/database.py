#simplex\infrastructure\sqlite\database.py

"""SQLAlchemy database setup and session management."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from simplex.config import settings


# ============================================
# Base for ORM models
# ============================================
Base = declarative_base()

# Name of the database file inside a state directory
DB_FILE_NAME = "state.db"

# Bumped whenever the ORM models change incompatibly
SCHEMA_VERSION = "1"


# ============================================
# Engine configuration
# ============================================
def create_db_engine(
    db_path: Union[str, Path],
    echo: Optional[bool] = None,
    busy_timeout: Optional[float] = None,
) -> Engine:
    """Create SQLAlchemy engine for a state database file."""

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=settings.echo_sql if echo is None else echo,
        connect_args={
            # Sessions are handed between threads by the pool
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout if busy_timeout is None else busy_timeout,
        },
    )

    # SQLite leaves foreign keys off unless asked per connection
    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


# ============================================
# Session factory function
# ============================================
def get_session_factory(engine_instance: Engine) -> sessionmaker:
    """Get a session factory bound to the given engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine_instance,
        expire_on_commit=False
    )


# ============================================
# Session management
# ============================================
@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    One session, one transaction.

    Usage:
        with session_scope(factory) as session:
            session.add(orm)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
