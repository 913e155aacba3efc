"""Component registry - validates and records component definitions."""

import logging
from datetime import datetime
from typing import List, Union

from simplex.components.specification import Specification, read_specification
from simplex.core.errors import ComponentNotFound, SimplexValidationError
from simplex.core.models import Component, ComponentType
from simplex.core.repository import ComponentRepository

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Registers components once and serves them back."""

    def __init__(self, repository: ComponentRepository):
        self._repo = repository

    # -------------------------
    # REGISTER
    # -------------------------

    def add_component(
        self,
        component_id: str,
        component_type: Union[ComponentType, str],
        component_path: str,
        specification_path: str,
    ) -> Component:
        """
        Register a new component.

        Paths are only checked for well-formedness here; they are resolved
        when the component is first built or its specification is read.
        Re-registering an existing id raises DuplicateComponentError.
        """
        component_type = ComponentType.parse(component_type)

        if not isinstance(component_id, str) or not component_id:
            raise SimplexValidationError("component id is required")
        if component_id != component_id.strip():
            raise SimplexValidationError(
                f"component id {component_id!r} must not have surrounding whitespace"
            )
        for name, value in (
            ("component_path", component_path),
            ("specification_path", specification_path),
        ):
            if not isinstance(value, str) or not value.strip():
                raise SimplexValidationError(f"{name} must be a non-empty path")

        component = Component(
            id=component_id,
            component_type=component_type,
            component_path=component_path,
            specification_path=specification_path,
            created_at=datetime.utcnow(),
        )
        self._repo.create(component)

        logger.info(f"[component {component_id}] registered ({component_type.value})")
        return component

    # -------------------------
    # READ
    # -------------------------

    def get_component(self, component_id: str) -> Component:
        component = self._repo.get(component_id)
        if component is None:
            raise ComponentNotFound(f"Component {component_id} not found")
        return component

    def list_components(self) -> List[Component]:
        return self._repo.list()

    def load_specification(self, component_id: str) -> Specification:
        """Read the component's specification fresh from disk."""
        component = self.get_component(component_id)
        return read_specification(component.specification_path)
