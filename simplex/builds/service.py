"""Build service - turns registered components into tagged images."""

import hashlib
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import IO, List, Optional
from uuid import uuid4

from simplex.builds.locks import KeyedLock, build_locks
from simplex.config import settings
from simplex.core.errors import (
    BuildConflictError,
    BuildFailed,
    BuildNotFound,
    ComponentNotFound,
    ContainerRuntimeError,
    OperationCancelled,
    PersistenceError,
)
from simplex.core.models import Build, Component
from simplex.core.repository import BuildRepository, ComponentRepository
from simplex.core.runtime import ContainerRuntime, LogCallback

logger = logging.getLogger(__name__)

LATEST_TAG = "latest"

_INVALID_REPO_CHARS = re.compile(r"[^a-z0-9._-]+")
_REPEATED_SEPARATORS = re.compile(r"[._-]{2,}")


def repository_name(component_id: str, namespace: str) -> str:
    """
    Docker repository for a component's images.

    Ids that are not already valid repository names are normalised and
    suffixed with a digest of the original id so distinct ids never share
    a repository.
    """
    normalized = _INVALID_REPO_CHARS.sub("-", component_id.lower())
    normalized = _REPEATED_SEPARATORS.sub("-", normalized).strip("._-")
    if normalized != component_id:
        digest = hashlib.sha1(component_id.encode("utf-8")).hexdigest()[:8]
        normalized = f"{normalized}-{digest}" if normalized else f"component-{digest}"
    return f"{namespace}/{normalized}" if namespace else normalized


class BuildService:
    """
    Builds component images.

    At most one build per component runs at a time in this process (all
    services share build_locks unless a KeyedLock is injected), so the
    component's latest tag always ends on the image of the last recorded
    build. With lock_timeout=None concurrent callers queue; otherwise they
    give up with BuildConflictError once the timeout elapses (0 = fail fast).
    """

    def __init__(
        self,
        components: ComponentRepository,
        builds: BuildRepository,
        runtime: ContainerRuntime,
        locks: Optional[KeyedLock] = None,
        namespace: Optional[str] = None,
        lock_timeout: Optional[float] = None,
    ):
        self._components = components
        self._builds = builds
        self._runtime = runtime
        self._locks = locks if locks is not None else build_locks
        self._namespace = settings.image_namespace if namespace is None else namespace
        self._lock_timeout = lock_timeout

    # -------------------------
    # CREATE
    # -------------------------

    def create_build(
        self,
        component_id: str,
        log_sink: Optional[IO[str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Build:
        """
        Build, tag and record a new image for a component.

        Build output is written to log_sink; failures writing to it are
        logged and otherwise ignored. Setting cancel aborts the build
        until tagging starts; after that the build runs to completion so
        latest never points at an unrecorded image.

        Raises:
            ComponentNotFound, BuildConflictError, BuildFailed,
            OperationCancelled, PersistenceError
        """
        component = self._require_component(component_id)

        with self._locks.hold(component_id, timeout=self._lock_timeout) as acquired:
            if not acquired:
                raise BuildConflictError(
                    f"Another build of component {component_id} is in progress"
                )
            return self._build_locked(component, log_sink, cancel)

    def _build_locked(
        self,
        component: Component,
        log_sink: Optional[IO[str]],
        cancel: Optional[threading.Event],
    ) -> Build:
        self._check_cancelled(cancel, component.id)

        context = Path(component.component_path)
        if not context.is_dir():
            raise BuildFailed(
                f"Build context {context} for component {component.id} is not a directory"
            )

        repository = self.repository_for(component.id)
        # Build number orders tags; the random part keeps a tag that is
        # already recorded from ever being moved
        number = self._builds.count_by_component(component.id) + 1
        tag = f"{number}-{uuid4().hex[:8]}"
        build_id = f"{repository}:{tag}"
        latest_id = f"{repository}:{LATEST_TAG}"
        if self._builds.get(build_id) is not None:
            raise BuildConflictError(f"Build {build_id} is already recorded", tag=build_id)

        logger.info(f"[build {build_id}] building from {context}")
        image_id = self._runtime.build_image(
            str(context),
            on_output=self._sink_writer(log_sink, build_id),
            should_stop=cancel.is_set if cancel is not None else None,
        )
        logger.info(f"[build {build_id}] built image {image_id}")
        self._check_cancelled(cancel, component.id, image_id=image_id, tag=build_id)

        try:
            self._runtime.tag_image(image_id, repository, tag)
            self._runtime.tag_image(image_id, repository, LATEST_TAG)
            for reference in (build_id, latest_id):
                resolved = self._runtime.inspect_image(reference)
                if resolved.id != image_id:
                    raise BuildFailed(
                        f"Tag {reference} resolves to {resolved.id}, expected {image_id}",
                        image_id=image_id,
                        tag=build_id,
                    )
        except BuildFailed:
            raise
        except ContainerRuntimeError as e:
            raise BuildFailed(
                f"Could not tag image {image_id} as {build_id}: {e}",
                image_id=image_id,
                tag=build_id,
            ) from e

        build = Build(
            id=build_id,
            component_id=component.id,
            image_id=image_id,
            created_at=datetime.utcnow(),
        )
        try:
            self._builds.create(build)
        except PersistenceError as e:
            # The image and its tags stay in the runtime for external cleanup
            logger.error(
                f"[build {build_id}] could not record build, image {image_id} left orphaned: {e}"
            )
            raise PersistenceError(str(e), image_id=image_id, tag=build_id) from e

        logger.info(f"[build {build_id}] recorded ({latest_id} -> {image_id})")
        return build

    # -------------------------
    # READ
    # -------------------------

    def get_build(self, build_id: str) -> Build:
        build = self._builds.get(build_id)
        if build is None:
            raise BuildNotFound(f"Build {build_id} not found")
        return build

    def list_builds(self, component_id: str) -> List[Build]:
        self._require_component(component_id)
        return self._builds.list_by_component(component_id)

    def repository_for(self, component_id: str) -> str:
        return repository_name(component_id, self._namespace)

    def latest_tag(self, component_id: str) -> str:
        """Image reference that always points at the component's newest build."""
        return f"{self.repository_for(component_id)}:{LATEST_TAG}"

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _require_component(self, component_id: str) -> Component:
        component = self._components.get(component_id)
        if component is None:
            raise ComponentNotFound(f"Component {component_id} not found")
        return component

    @staticmethod
    def _check_cancelled(cancel, component_id: str, image_id=None, tag=None) -> None:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(
                f"Build of component {component_id} cancelled",
                image_id=image_id,
                tag=tag,
            )

    @staticmethod
    def _sink_writer(log_sink: Optional[IO[str]], build_id: str) -> Optional[LogCallback]:
        if log_sink is None:
            return None

        broken = False

        def write(chunk: str) -> None:
            nonlocal broken
            if broken:
                return
            try:
                log_sink.write(chunk)
            except Exception as e:
                broken = True
                logger.warning(f"[build {build_id}] log sink failed, dropping build output: {e}")

        return write
