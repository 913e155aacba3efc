"""Build and run declaratively defined components as Docker images and containers."""

from simplex.builds.service import BuildService
from simplex.components.registry import ComponentRegistry
from simplex.components.specification import Specification, read_specification
from simplex.container import SimplexContainer, build_container, wire_services
from simplex.core.models import Build, Component, ComponentType, Execution
from simplex.executions.service import ExecutionService
from simplex.infrastructure.sqlite.database import DB_FILE_NAME
from simplex.infrastructure.sqlite.state import StateStore, init_state, open_state

__all__ = [
    "Build",
    "BuildService",
    "Component",
    "ComponentRegistry",
    "ComponentType",
    "DB_FILE_NAME",
    "Execution",
    "ExecutionService",
    "SimplexContainer",
    "Specification",
    "StateStore",
    "build_container",
    "init_state",
    "open_state",
    "read_specification",
    "wire_services",
]
