#tests\conftest.py

"""Pytest configuration and fixtures."""

import itertools
import json
import threading
import time
from collections import defaultdict

import pytest

from simplex.builds.locks import KeyedLock
from simplex.container import wire_services
from simplex.config import SimplexSettings
from simplex.core.errors import BuildFailed, ContainerRuntimeError, OperationCancelled
from simplex.core.models import ComponentType, ContainerInfo, ImageInfo
from simplex.core.runtime import ContainerRuntime
from simplex.infrastructure.sqlite.state import init_state, open_state


OUTPUTS_MOUNTPOINT = "/simplex/outputs/outputs.txt"


class FakeRuntime(ContainerRuntime):
    """In-process stand-in for Docker that records every call."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

        self.images = {}       # image_id -> set of references
        self.tags = {}         # "repository:tag" -> image_id
        self.containers = {}   # container_id -> dict

        # Knobs
        self.build_delay = 0.0
        self.build_hook = None
        self.build_error = None
        self.create_error = None
        self.start_error = None
        self.exit_code = 0

        # Observations
        self.build_calls = []
        self.active_builds = defaultdict(int)
        self.max_active_builds = defaultdict(int)

    # -------------------------
    # IMAGES
    # -------------------------

    def build_image(self, context_path, on_output=None, should_stop=None):
        with self._lock:
            self.build_calls.append(context_path)
            self.active_builds[context_path] += 1
            self.max_active_builds[context_path] = max(
                self.max_active_builds[context_path],
                self.active_builds[context_path],
            )
        try:
            if self.build_hook is not None:
                self.build_hook(context_path)
            if self.build_delay:
                time.sleep(self.build_delay)
            if on_output is not None:
                on_output("Step 1/1 : FROM alpine\n")
            if should_stop is not None and should_stop():
                raise OperationCancelled(f"Build of {context_path} cancelled")
            if self.build_error is not None:
                raise BuildFailed(self.build_error)

            with self._lock:
                image_id = f"sha256:{next(self._ids):064x}"
                self.images[image_id] = set()
            if on_output is not None:
                on_output(f"Successfully built {image_id[7:19]}\n")
            return image_id
        finally:
            with self._lock:
                self.active_builds[context_path] -= 1

    def tag_image(self, image_id, repository, tag):
        reference = f"{repository}:{tag}"
        with self._lock:
            if image_id not in self.images:
                raise ContainerRuntimeError(f"No such image: {image_id}")
            previous = self.tags.get(reference)
            if previous is not None:
                self.images[previous].discard(reference)
            self.tags[reference] = image_id
            self.images[image_id].add(reference)

    def inspect_image(self, reference):
        with self._lock:
            image_id = self.tags.get(reference)
            if image_id is None and reference in self.images:
                image_id = reference
            if image_id is None:
                raise ContainerRuntimeError(f"No such image: {reference}")
            return ImageInfo(id=image_id, tags=sorted(self.images[image_id]))

    # -------------------------
    # CONTAINERS
    # -------------------------

    def create_container(self, image, command=None, environment=None, mounts=None, labels=None):
        if self.create_error is not None:
            raise ContainerRuntimeError(self.create_error)
        with self._lock:
            if image not in self.images and image not in self.tags:
                raise ContainerRuntimeError(f"No such image: {image}")
            container_id = f"container-{next(self._ids)}"
            self.containers[container_id] = {
                "image": image,
                "command": command,
                "environment": dict(environment or {}),
                "mounts": dict(mounts or {}),
                "labels": dict(labels or {}),
                "status": "created",
                "exit_code": None,
            }
        return container_id

    def start_container(self, container_id):
        if self.start_error is not None:
            raise ContainerRuntimeError(self.start_error)
        self._container(container_id)["status"] = "running"

    def wait_container(self, container_id, timeout=None):
        container = self._container(container_id)
        container["status"] = "exited"
        container["exit_code"] = self.exit_code
        return self.exit_code

    def inspect_container(self, container_id):
        container = self._container(container_id)
        return ContainerInfo(
            id=container_id,
            status=container["status"],
            exit_code=container["exit_code"],
        )

    def remove_container(self, container_id, force=False):
        container = self._container(container_id)
        if container["status"] == "running" and not force:
            raise ContainerRuntimeError(f"Container {container_id} is running")
        with self._lock:
            del self.containers[container_id]

    def _container(self, container_id):
        try:
            return self.containers[container_id]
        except KeyError:
            raise ContainerRuntimeError(f"No such container: {container_id}") from None


# ============================================
# State store
# ============================================

@pytest.fixture
def state_dir(tmp_path):
    """Path for a state directory that does not exist yet."""
    return tmp_path / "state"


@pytest.fixture
def state(state_dir):
    init_state(state_dir)
    store = open_state(state_dir)

    yield store

    store.close()


# ============================================
# Runtime and services
# ============================================

@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def test_settings(tmp_path):
    return SimplexSettings(
        _env_file=None,
        state_dir=tmp_path / "state",
        image_namespace="simplex-test",
    )


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def services(state, runtime, test_settings, locks):
    return wire_services(state, runtime, settings=test_settings, locks=locks)


@pytest.fixture
def registry(services):
    return services.registry


@pytest.fixture
def build_service(services):
    return services.builds


@pytest.fixture
def execution_service(services):
    return services.executions


# ============================================
# Components
# ============================================

@pytest.fixture
def write_specification(tmp_path):
    """Write a specification document and return its path."""
    counter = itertools.count(1)

    def write(document, name=None):
        path = tmp_path / (name or f"component-{next(counter)}.json")
        if isinstance(document, str):
            path.write_text(document)
        else:
            path.write_text(json.dumps(document))
        return path

    return write


@pytest.fixture
def sample_specification():
    return {
        "run": {
            "mountpoints": [{"mountpoint": OUTPUTS_MOUNTPOINT}],
            "env": {"MY_ENV": "hello"},
        }
    }


@pytest.fixture
def component_dir(tmp_path):
    path = tmp_path / "single-task"
    path.mkdir()
    (path / "Dockerfile").write_text("FROM alpine\n")
    return path


@pytest.fixture
def sample_component(registry, component_dir, write_specification, sample_specification):
    """A registered task component with one mountpoint and MY_ENV=hello."""
    specification_path = write_specification(sample_specification)
    return registry.add_component(
        "test-component",
        ComponentType.TASK,
        str(component_dir),
        str(specification_path),
    )


@pytest.fixture
def sample_build(build_service, sample_component):
    return build_service.create_build(sample_component.id)
