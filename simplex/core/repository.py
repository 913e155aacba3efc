# simplex/core/repository.py

from abc import ABC, abstractmethod
from typing import List, Optional

from simplex.core.models import Build, Component, Execution


class ComponentRepository(ABC):
    """
    Persistence contract for components.
    """

    @abstractmethod
    def create(self, component: Component) -> None:
        """
        Persist a new component.
        Must fail with DuplicateComponentError if the id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, component_id: str) -> Optional[Component]:
        """
        Fetch component by ID.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def list(self) -> List[Component]:
        raise NotImplementedError


class BuildRepository(ABC):
    """
    Persistence contract for builds.
    """

    @abstractmethod
    def create(self, build: Build) -> None:
        """
        Persist a new build.
        Must fail if the owning component does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, build_id: str) -> Optional[Build]:
        raise NotImplementedError

    @abstractmethod
    def list_by_component(self, component_id: str) -> List[Build]:
        """
        List builds of a component, oldest first.
        """
        raise NotImplementedError

    @abstractmethod
    def count_by_component(self, component_id: str) -> int:
        raise NotImplementedError


class ExecutionRepository(ABC):
    """
    Persistence contract for executions.
    """

    @abstractmethod
    def create(self, execution: Execution) -> None:
        """
        Persist a new execution.
        Must fail if the owning build does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, execution_id: str) -> Optional[Execution]:
        raise NotImplementedError

    @abstractmethod
    def list_by_build(self, build_id: str) -> List[Execution]:
        raise NotImplementedError
