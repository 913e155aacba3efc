"""Test component registration."""

import pytest

from simplex.core.errors import (
    ComponentNotFound,
    DuplicateComponentError,
    InvalidComponentType,
    MalformedSpecification,
    SimplexConflictError,
    SimplexValidationError,
)
from simplex.core.models import ComponentType


class TestAddComponent:

    def test_add_component(self, registry):
        """Test registered values are returned unchanged."""
        component = registry.add_component(
            "test-component",
            ComponentType.TASK,
            "examples/single-task",
            "examples/single-task/component.json",
        )

        assert component.id == "test-component"
        assert component.component_type == ComponentType.TASK
        assert component.component_path == "examples/single-task"
        assert component.specification_path == "examples/single-task/component.json"

    def test_type_given_as_string(self, registry):
        component = registry.add_component("svc", "service", "a", "a/spec.json")

        assert component.component_type == ComponentType.SERVICE

    def test_invalid_type(self, registry):
        with pytest.raises(InvalidComponentType):
            registry.add_component("x", "cronjob", "a", "a/spec.json")

        with pytest.raises(ComponentNotFound):
            registry.get_component("x")

    def test_empty_id(self, registry):
        with pytest.raises(SimplexValidationError):
            registry.add_component("", ComponentType.TASK, "a", "a/spec.json")

    def test_empty_path(self, registry):
        with pytest.raises(SimplexValidationError):
            registry.add_component("x", ComponentType.TASK, "", "a/spec.json")

    def test_paths_not_checked_on_disk(self, registry, tmp_path):
        """Test registration does not require the paths to exist yet."""
        missing = tmp_path / "not-there"

        component = registry.add_component(
            "later", ComponentType.TASK, str(missing), str(missing / "spec.json")
        )

        assert registry.get_component("later") == component

    def test_duplicate_id_keeps_original(self, registry):
        """Test re-registering an id fails and leaves the first definition."""
        original = registry.add_component("dup", ComponentType.TASK, "a", "a/spec.json")

        with pytest.raises(DuplicateComponentError) as exc_info:
            registry.add_component("dup", ComponentType.SERVICE, "b", "b/spec.json")

        assert isinstance(exc_info.value, SimplexConflictError)
        assert registry.get_component("dup") == original


class TestReadComponents:

    def test_get_missing(self, registry):
        with pytest.raises(ComponentNotFound):
            registry.get_component("missing")

    def test_list_components(self, registry):
        registry.add_component("first", ComponentType.TASK, "a", "a/spec.json")
        registry.add_component("second", ComponentType.TASK, "b", "b/spec.json")

        assert [c.id for c in registry.list_components()] == ["first", "second"]

    def test_load_specification(self, registry, sample_component):
        specification = registry.load_specification(sample_component.id)

        assert specification.env == {"MY_ENV": "hello"}
        assert specification.mountpoints == ["/simplex/outputs/outputs.txt"]

    def test_load_missing_specification(self, registry, tmp_path):
        registry.add_component("x", ComponentType.TASK, "a", str(tmp_path / "missing.json"))

        with pytest.raises(MalformedSpecification):
            registry.load_specification("x")
