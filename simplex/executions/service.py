"""Execution service - starts containers from builds."""

import logging
import os
import shlex
import threading
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Union

from simplex.components.specification import Specification, read_specification
from simplex.core.errors import (
    BuildNotFound,
    ComponentNotFound,
    ContainerRuntimeError,
    ExecutionNotFound,
    OperationCancelled,
    PersistenceError,
    SimplexValidationError,
    UnknownMountTarget,
)
from simplex.core.models import Build, Execution
from simplex.core.repository import BuildRepository, ComponentRepository, ExecutionRepository
from simplex.core.runtime import ContainerRuntime

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str], None]


class ExecutionService:
    """
    Starts containers from recorded builds.

    execute() returns as soon as the container is running. Waiting,
    inspecting and removing the container are left to the caller through
    the runtime, using the returned execution id.
    """

    def __init__(
        self,
        builds: BuildRepository,
        components: ComponentRepository,
        executions: ExecutionRepository,
        runtime: ContainerRuntime,
    ):
        self._builds = builds
        self._components = components
        self._executions = executions
        self._runtime = runtime

    # -------------------------
    # EXECUTE
    # -------------------------

    def execute(
        self,
        build_id: str,
        command: Command = "",
        mounts: Optional[Mapping[str, str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Execution:
        """
        Create and start a container for a build.

        Args:
            build_id: Build to run (its image tag)
            command: Override for the image command; empty runs the image default
            mounts: host path -> container path; every container path must be
                declared as a mountpoint by the component's specification

        Raises:
            BuildNotFound, UnknownMountTarget, SimplexValidationError,
            ContainerRuntimeError, OperationCancelled, PersistenceError
        """
        build = self._require_build(build_id)
        specification = self._load_specification(build)
        bound = self._resolve_mounts(build, specification, mounts or {})
        argv, command_text = self._parse_command(command)

        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"Execution of build {build_id} cancelled")

        logger.info(f"[execution {build_id}] creating container")
        container_id = self._runtime.create_container(
            image=build.image_id,
            command=argv or None,
            environment=specification.env,
            mounts=bound,
            labels={
                "managed_by": "simplex",
                "simplex.build_id": build.id,
                "simplex.component_id": build.component_id,
            },
        )

        try:
            self._runtime.start_container(container_id)
        except ContainerRuntimeError as e:
            raise ContainerRuntimeError(
                f"Could not start container {container_id} for build {build_id}: {e}",
                container_id=container_id,
            ) from e
        logger.info(f"[execution {build_id}] started container {container_id}")

        if cancel is not None and cancel.is_set():
            raise OperationCancelled(
                f"Execution of build {build_id} cancelled after container start",
                container_id=container_id,
            )

        execution = Execution(
            id=container_id,
            build_id=build.id,
            command=command_text,
            mounts=bound,
            created_at=datetime.utcnow(),
        )
        try:
            self._executions.create(execution)
        except PersistenceError as e:
            logger.error(
                f"[execution {build_id}] could not record container {container_id}: {e}"
            )
            raise PersistenceError(str(e), container_id=container_id) from e

        return execution

    # -------------------------
    # READ
    # -------------------------

    def get_execution(self, execution_id: str) -> Execution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFound(f"Execution {execution_id} not found")
        return execution

    def list_executions(self, build_id: str) -> List[Execution]:
        self._require_build(build_id)
        return self._executions.list_by_build(build_id)

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _require_build(self, build_id: str) -> Build:
        build = self._builds.get(build_id)
        if build is None:
            raise BuildNotFound(f"Build {build_id} not found")
        return build

    def _load_specification(self, build: Build) -> Specification:
        component = self._components.get(build.component_id)
        if component is None:
            raise ComponentNotFound(
                f"Component {build.component_id} of build {build.id} not found"
            )
        return read_specification(component.specification_path)

    @staticmethod
    def _resolve_mounts(
        build: Build,
        specification: Specification,
        mounts: Mapping[str, str],
    ) -> Dict[str, str]:
        """Check mount targets against the specification; return absolute host paths."""
        declared = set(specification.mountpoints)

        unknown = sorted({target for target in mounts.values() if target not in declared})
        if unknown:
            raise UnknownMountTarget(unknown, build.id)

        bound: Dict[str, str] = {}
        targets = set()
        for source, target in mounts.items():
            if target in targets:
                raise SimplexValidationError(f"Container path {target} is bound more than once")
            host_path = os.path.abspath(source)
            if host_path in bound:
                raise SimplexValidationError(f"Host path {host_path} is mounted more than once")
            targets.add(target)
            bound[host_path] = target
        return bound

    @staticmethod
    def _parse_command(command: Command):
        if not command:
            return [], ""
        if isinstance(command, str):
            try:
                return shlex.split(command), command
            except ValueError as e:
                raise SimplexValidationError(f"Cannot parse command {command!r}: {e}") from e
        argv = list(command)
        return argv, shlex.join(argv)
