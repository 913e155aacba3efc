"""End-to-end test against a real Docker daemon."""

from pathlib import Path

import docker
import pytest
import requests

from simplex.container import build_container
from simplex.config import SimplexSettings
from simplex.core.models import ComponentType
from simplex.infrastructure.docker.runtime import DockerRuntime
from simplex.infrastructure.sqlite.state import init_state


EXAMPLE_DIR = Path(__file__).resolve().parent.parent / "examples" / "single-task"

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def docker_runtime():
    try:
        client = docker.from_env(timeout=120)
        client.ping()
    except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
        pytest.skip(f"Docker daemon not available: {e}")

    runtime = DockerRuntime(client)
    yield runtime
    runtime.close()


@pytest.fixture
def simplex(tmp_path, docker_runtime):
    state_dir = tmp_path / "state"
    init_state(state_dir)
    settings = SimplexSettings(_env_file=None, state_dir=state_dir, image_namespace="simplex-it")

    services = build_container(state_dir, runtime=docker_runtime, settings=settings)
    yield services
    services.state.close()


def test_single_component(simplex, docker_runtime, tmp_path):
    """Build the example task, run it, and read what it wrote to the mount."""
    client = docker_runtime._client

    component = simplex.registry.add_component(
        "test-component",
        ComponentType.TASK,
        str(EXAMPLE_DIR),
        str(EXAMPLE_DIR / "component.json"),
    )

    build = simplex.builds.create_build(component.id)
    assert build.component_id == component.id

    image = client.images.get(build.id)
    try:
        repository, _, _ = build.id.rpartition(":")
        assert build.id in image.tags
        assert f"{repository}:latest" in image.tags

        specification = simplex.registry.load_specification(component.id)
        mounts = {}
        for mountpoint in specification.mountpoints:
            source = tmp_path / f"mount-{len(mounts)}"
            source.touch()
            mounts[str(source)] = mountpoint

        execution = simplex.executions.execute(build.id, "", mounts)
        try:
            exit_code = docker_runtime.wait_container(execution.id, timeout=120)
            assert exit_code == 0
        finally:
            docker_runtime.remove_container(execution.id, force=True)

        inverse_mounts = {target: source for source, target in mounts.items()}
        lines = Path(inverse_mounts["/simplex/outputs/outputs.txt"]).read_text().split("\n")

        assert lines[0] == specification.env["MY_ENV"]
        trailing = lines[1:]
        assert all(line == "" for line in trailing)
        assert len(trailing) <= 1
    finally:
        client.images.remove(image.id, force=True)
