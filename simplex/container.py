#simplex\container.py

"""Dependency injection container - wires the services around one state store."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from simplex.builds.locks import KeyedLock
from simplex.builds.service import BuildService
from simplex.components.registry import ComponentRegistry
from simplex.config import SimplexSettings, settings as default_settings
from simplex.core.runtime import ContainerRuntime
from simplex.executions.service import ExecutionService
from simplex.infrastructure.sqlite.state import StateStore, open_state


@dataclass
class SimplexContainer:
    """Services sharing one state store and one runtime."""

    state: StateStore
    runtime: ContainerRuntime
    registry: ComponentRegistry
    builds: BuildService
    executions: ExecutionService

    def close(self) -> None:
        self.state.close()
        close_runtime = getattr(self.runtime, "close", None)
        if close_runtime is not None:
            close_runtime()

    def __enter__(self) -> "SimplexContainer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wire_services(
    state: StateStore,
    runtime: ContainerRuntime,
    settings: Optional[SimplexSettings] = None,
    locks: Optional[KeyedLock] = None,
) -> SimplexContainer:
    """
    Build the services around an already open store and runtime.

    Without locks, builds serialize on the process-wide build_locks.
    """
    settings = settings or default_settings

    # ============================================
    # SERVICES
    # ============================================

    registry = ComponentRegistry(repository=state.components)

    builds = BuildService(
        components=state.components,
        builds=state.builds,
        runtime=runtime,
        locks=locks,
        namespace=settings.image_namespace,
        lock_timeout=settings.build_lock_timeout,
    )

    executions = ExecutionService(
        builds=state.builds,
        components=state.components,
        executions=state.executions,
        runtime=runtime,
    )

    return SimplexContainer(
        state=state,
        runtime=runtime,
        registry=registry,
        builds=builds,
        executions=executions,
    )


def build_container(
    state_dir: Union[str, Path, None] = None,
    runtime: Optional[ContainerRuntime] = None,
    settings: Optional[SimplexSettings] = None,
) -> SimplexContainer:
    """
    Open the state directory and connect to Docker unless a runtime is given.

    The returned container owns both handles; close() it when done.
    """
    settings = settings or default_settings
    state = open_state(
        state_dir or settings.state_dir,
        busy_timeout=settings.sqlite_busy_timeout,
    )

    if runtime is None:
        from simplex.infrastructure.docker.runtime import DockerRuntime

        try:
            runtime = DockerRuntime.from_env(timeout=settings.docker_timeout)
        except Exception:
            state.close()
            raise

    return wire_services(state, runtime, settings=settings)
