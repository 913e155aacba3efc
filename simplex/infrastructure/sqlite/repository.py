#simplex\infrastructure\sqlite\repository.py

"""SQLite repository implementations using SQLAlchemy."""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from simplex.core.errors import DuplicateComponentError, PersistenceError
from simplex.core.models import Build, Component, Execution
from simplex.core.repository import BuildRepository, ComponentRepository, ExecutionRepository
from simplex.infrastructure.sqlite.models import BuildORM, ComponentORM, ExecutionORM

logger = logging.getLogger(__name__)


# ============================================
# Mapping Functions
# ============================================

def component_to_domain(orm: ComponentORM) -> Component:
    return Component(
        id=orm.id,
        component_type=orm.component_type,
        component_path=orm.component_path,
        specification_path=orm.specification_path,
        created_at=orm.created_at,
    )


def component_to_orm(component: Component) -> ComponentORM:
    return ComponentORM(
        id=component.id,
        component_type=component.component_type,
        component_path=component.component_path,
        specification_path=component.specification_path,
        created_at=component.created_at,
    )


def build_to_domain(orm: BuildORM) -> Build:
    return Build(
        id=orm.id,
        component_id=orm.component_id,
        image_id=orm.image_id,
        created_at=orm.created_at,
    )


def build_to_orm(build: Build) -> BuildORM:
    return BuildORM(
        id=build.id,
        component_id=build.component_id,
        image_id=build.image_id,
        created_at=build.created_at,
    )


def execution_to_domain(orm: ExecutionORM) -> Execution:
    return Execution(
        id=orm.id,
        build_id=orm.build_id,
        command=orm.command or "",
        mounts=dict(orm.mounts or {}),
        created_at=orm.created_at,
    )


def execution_to_orm(execution: Execution) -> ExecutionORM:
    return ExecutionORM(
        id=execution.id,
        build_id=execution.build_id,
        command=execution.command,
        mounts=dict(execution.mounts),
        created_at=execution.created_at,
    )


# ============================================
# Base
# ============================================

class _SqliteRepository:
    """Shared session handling; each public method is one transaction."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        return self._session_factory()

    def _insert(self, orm, description: str) -> None:
        session = self._get_session()
        try:
            session.add(orm)
            session.commit()
            logger.debug(f"[sqlite] insert {description} -> done")
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def _read(self, query):
        session = self._get_session()
        try:
            return query(session)
        except SQLAlchemyError as e:
            raise PersistenceError(f"State store read failed: {e}") from e
        finally:
            session.close()


# ============================================
# Components
# ============================================

class SqliteComponentRepository(_SqliteRepository, ComponentRepository):

    def create(self, component: Component) -> None:
        try:
            self._insert(component_to_orm(component), f"component {component.id}")
        except IntegrityError as e:
            raise DuplicateComponentError(
                f"Component {component.id} already exists"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create component {component.id}: {e}") from e

    def get(self, component_id: str) -> Optional[Component]:
        def query(session: Session):
            orm = session.get(ComponentORM, component_id)
            return component_to_domain(orm) if orm is not None else None

        return self._read(query)

    def list(self) -> List[Component]:
        def query(session: Session):
            rows = session.scalars(
                select(ComponentORM).order_by(ComponentORM.created_at.asc(), ComponentORM.id.asc())
            ).all()
            return [component_to_domain(orm) for orm in rows]

        return self._read(query)


# ============================================
# Builds
# ============================================

class SqliteBuildRepository(_SqliteRepository, BuildRepository):

    def create(self, build: Build) -> None:
        try:
            self._insert(build_to_orm(build), f"build {build.id}")
        except IntegrityError as e:
            raise PersistenceError(
                f"Build {build.id} rejected by state store "
                f"(unknown component {build.component_id} or tag already recorded)",
                image_id=build.image_id,
                tag=build.id,
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create build {build.id}: {e}",
                image_id=build.image_id,
                tag=build.id,
            ) from e

    def get(self, build_id: str) -> Optional[Build]:
        def query(session: Session):
            orm = session.get(BuildORM, build_id)
            return build_to_domain(orm) if orm is not None else None

        return self._read(query)

    def list_by_component(self, component_id: str) -> List[Build]:
        def query(session: Session):
            rows = session.scalars(
                select(BuildORM)
                .where(BuildORM.component_id == component_id)
                .order_by(BuildORM.created_at.asc(), BuildORM.id.asc())
            ).all()
            return [build_to_domain(orm) for orm in rows]

        return self._read(query)

    def count_by_component(self, component_id: str) -> int:
        def query(session: Session):
            return session.scalar(
                select(func.count())
                .select_from(BuildORM)
                .where(BuildORM.component_id == component_id)
            ) or 0

        return self._read(query)


# ============================================
# Executions
# ============================================

class SqliteExecutionRepository(_SqliteRepository, ExecutionRepository):

    def create(self, execution: Execution) -> None:
        try:
            self._insert(execution_to_orm(execution), f"execution {execution.id}")
        except IntegrityError as e:
            raise PersistenceError(
                f"Execution {execution.id} rejected by state store "
                f"(unknown build {execution.build_id} or container already recorded)",
                container_id=execution.id,
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create execution {execution.id}: {e}",
                container_id=execution.id,
            ) from e

    def get(self, execution_id: str) -> Optional[Execution]:
        def query(session: Session):
            orm = session.get(ExecutionORM, execution_id)
            return execution_to_domain(orm) if orm is not None else None

        return self._read(query)

    def list_by_build(self, build_id: str) -> List[Execution]:
        def query(session: Session):
            rows = session.scalars(
                select(ExecutionORM)
                .where(ExecutionORM.build_id == build_id)
                .order_by(ExecutionORM.created_at.asc(), ExecutionORM.id.asc())
            ).all()
            return [execution_to_domain(orm) for orm in rows]

        return self._read(query)
