"""Core domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from simplex.core.errors import InvalidComponentType


class ComponentType(Enum):
    """Kinds of component simplex knows how to build and run."""

    TASK = "task"
    SERVICE = "service"

    @classmethod
    def parse(cls, value: Union["ComponentType", str]) -> "ComponentType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise InvalidComponentType(
                f"Invalid component type {value!r} (expected one of: {allowed})"
            ) from None


@dataclass(frozen=True)
class Component:
    """A registered unit of work: build context plus run specification."""

    id: str
    component_type: ComponentType
    component_path: str
    specification_path: str
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class Build:
    """
    An image materialized from a component.

    `id` is the full image reference the build was tagged with; `image_id`
    is the runtime image identity that reference resolved to on commit.
    """

    id: str
    component_id: str
    image_id: str
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class Execution:
    """A container started from a build."""

    id: str
    build_id: str
    command: str = ""
    # host path -> container path
    mounts: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


# -------------------------
# Runtime snapshots
# -------------------------

@dataclass(frozen=True)
class ImageInfo:
    id: str
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContainerInfo:
    id: str
    status: str
    exit_code: Optional[int] = None

    @property
    def running(self) -> bool:
        return self.status == "running"
