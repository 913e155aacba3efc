#simplex\infrastructure\sqlite\models.py
"""SQLAlchemy ORM models for the state database."""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, Enum as SQLEnum, Text, ForeignKey

from simplex.core.models import ComponentType
from simplex.infrastructure.sqlite.database import Base


class ComponentORM(Base):
    """
    Component table - one row per registered component.

    Rows are never updated; the primary key enforces unique ids.
    """

    __tablename__ = "components"

    id = Column(String(255), primary_key=True)
    component_type = Column(
        "type",
        SQLEnum(ComponentType, name="component_type"),
        nullable=False,
    )
    component_path = Column(Text, nullable=False)
    specification_path = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ComponentORM(id={self.id}, type={self.component_type.value})>"


class BuildORM(Base):
    """Build table - the primary key is the image tag."""

    __tablename__ = "builds"

    id = Column(String(512), primary_key=True)
    component_id = Column(
        String(255),
        ForeignKey("components.id"),
        nullable=False,
        index=True,
    )
    image_id = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<BuildORM(id={self.id}, component_id={self.component_id})>"


class ExecutionORM(Base):
    """Execution table - the primary key is the container ID."""

    __tablename__ = "executions"

    id = Column(String(255), primary_key=True)
    build_id = Column(
        String(512),
        ForeignKey("builds.id"),
        nullable=False,
        index=True,
    )
    command = Column(Text, nullable=False, default="")
    mounts = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ExecutionORM(id={self.id}, build_id={self.build_id})>"


class StateMetadataORM(Base):
    """Key/value facts about the store itself (schema version)."""

    __tablename__ = "state_metadata"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
