#simplex\infrastructure\sqlite\state.py

"""State directory lifecycle: initialize once, open many times."""

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from simplex.core.errors import StateAlreadyInitialized, StateError, StateNotInitialized
from simplex.infrastructure.sqlite.database import (
    Base,
    DB_FILE_NAME,
    SCHEMA_VERSION,
    create_db_engine,
    get_session_factory,
    session_scope,
)
from simplex.infrastructure.sqlite.models import StateMetadataORM
from simplex.infrastructure.sqlite.repository import (
    SqliteBuildRepository,
    SqliteComponentRepository,
    SqliteExecutionRepository,
)

logger = logging.getLogger(__name__)


def db_path_for(state_dir: Union[str, Path]) -> Path:
    return Path(state_dir) / DB_FILE_NAME


class StateStore:
    """
    Open handle on a state database.

    Safe to share between threads: every repository call runs in its
    own session and transaction.
    """

    def __init__(self, engine: Engine, state_dir: Path):
        self.engine = engine
        self.state_dir = state_dir
        self.session_factory = get_session_factory(engine)

        self.components = SqliteComponentRepository(self.session_factory)
        self.builds = SqliteBuildRepository(self.session_factory)
        self.executions = SqliteExecutionRepository(self.session_factory)

    @property
    def db_path(self) -> Path:
        return db_path_for(self.state_dir)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "StateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<StateStore(db_path={self.db_path})>"


# ============================================
# Initialization
# ============================================
def init_state(state_dir: Union[str, Path]) -> Path:
    """
    Create a state directory holding a fresh database.

    Refuses to touch a directory that already exists so a previous store
    is never adopted or clobbered. Returns the database path.
    """
    state_dir = Path(state_dir)
    try:
        state_dir.mkdir(parents=True, exist_ok=False)
    except FileExistsError as e:
        raise StateAlreadyInitialized(
            f"State directory {state_dir} already exists"
        ) from e

    db_path = db_path_for(state_dir)
    engine = create_db_engine(db_path)
    try:
        Base.metadata.create_all(bind=engine)
        with session_scope(get_session_factory(engine)) as session:
            session.add(StateMetadataORM(key="schema_version", value=SCHEMA_VERSION))
    except SQLAlchemyError as e:
        engine.dispose()
        shutil.rmtree(state_dir, ignore_errors=True)
        raise StateError(f"Could not create state database at {db_path}: {e}") from e
    engine.dispose()

    logger.info(f"[state] initialized {db_path}")
    return db_path


# ============================================
# Opening
# ============================================
def open_state(
    state_dir: Union[str, Path],
    busy_timeout: Optional[float] = None,
) -> StateStore:
    """Open an initialized state directory."""
    state_dir = Path(state_dir)
    db_path = db_path_for(state_dir)
    if not db_path.is_file():
        raise StateNotInitialized(f"No state database at {db_path}")

    engine = create_db_engine(db_path, busy_timeout=busy_timeout)
    try:
        _check_schema(engine, db_path)
    except Exception:
        engine.dispose()
        raise

    logger.debug(f"[state] opened {db_path}")
    return StateStore(engine, state_dir)


def _check_schema(engine: Engine, db_path: Path) -> None:
    """Raise StateNotInitialized unless the database matches our models."""
    try:
        inspector = inspect(engine)
        existing = set(inspector.get_table_names())
        for table in Base.metadata.sorted_tables:
            if table.name not in existing:
                raise StateNotInitialized(
                    f"State database {db_path} is missing table {table.name}"
                )
            columns = {column["name"] for column in inspector.get_columns(table.name)}
            missing = [c.name for c in table.columns if c.name not in columns]
            if missing:
                raise StateNotInitialized(
                    f"State database {db_path} table {table.name} is missing "
                    f"columns: {', '.join(missing)}"
                )

        with session_scope(get_session_factory(engine)) as session:
            version = session.scalar(
                select(StateMetadataORM.value).where(StateMetadataORM.key == "schema_version")
            )
    except SQLAlchemyError as e:
        raise StateNotInitialized(f"Could not read state database {db_path}: {e}") from e

    if version != SCHEMA_VERSION:
        raise StateNotInitialized(
            f"State database {db_path} has schema version {version!r}, "
            f"expected {SCHEMA_VERSION!r}"
        )
