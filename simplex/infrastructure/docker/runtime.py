# simplex/infrastructure/docker/runtime.py
"""Container runtime backed by the local Docker daemon."""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

import docker
import requests

from simplex.config import settings
from simplex.core.errors import BuildFailed, ContainerRuntimeError, OperationCancelled
from simplex.core.models import ContainerInfo, ImageInfo
from simplex.core.runtime import ContainerRuntime, LogCallback

logger = logging.getLogger(__name__)


@contextmanager
def _docker_call(action: str, **ids) -> Iterator[None]:
    """Translate Docker SDK and transport failures into ContainerRuntimeError."""
    try:
        yield
    except docker.errors.DockerException as e:
        raise ContainerRuntimeError(f"Docker failed to {action}: {e}", **ids) from e
    except requests.exceptions.RequestException as e:
        raise ContainerRuntimeError(f"Docker daemon unreachable while trying to {action}: {e}", **ids) from e


class DockerRuntime(ContainerRuntime):
    """
    ContainerRuntime over docker.DockerClient.

    The client is thread-safe for the calls used here, so one instance
    can serve every service.
    """

    def __init__(self, client: docker.DockerClient):
        self._client = client

    @classmethod
    def from_env(cls, timeout: Optional[int] = None) -> "DockerRuntime":
        """Connect using DOCKER_HOST / DOCKER_* environment variables."""
        with _docker_call("connect"):
            client = docker.from_env(timeout=timeout or settings.docker_timeout)
        logger.info("Connected to Docker daemon")
        return cls(client)

    # -------------------------
    # IMAGES
    # -------------------------

    def build_image(
        self,
        context_path: str,
        on_output: Optional[LogCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> str:
        image_id = None
        try:
            output = self._client.api.build(
                path=context_path,
                rm=True,
                forcerm=True,
                decode=True,
            )
            for entry in output:
                if should_stop is not None and should_stop():
                    raise OperationCancelled(f"Build of {context_path} cancelled")
                if "stream" in entry and on_output is not None:
                    on_output(entry["stream"])
                if "error" in entry:
                    raise BuildFailed(f"Docker build of {context_path} failed: {entry['error'].strip()}")
                aux = entry.get("aux")
                if isinstance(aux, dict) and aux.get("ID"):
                    image_id = aux["ID"]
                elif "stream" in entry and entry["stream"].startswith("Successfully built "):
                    # Legacy builder without aux messages
                    image_id = entry["stream"].split()[-1]
        except docker.errors.DockerException as e:
            raise BuildFailed(f"Docker build of {context_path} failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise BuildFailed(f"Docker daemon unreachable while building {context_path}: {e}") from e

        if not image_id:
            raise BuildFailed(f"Docker build of {context_path} did not report an image ID")
        return image_id

    def tag_image(self, image_id: str, repository: str, tag: str) -> None:
        with _docker_call(f"tag {image_id} as {repository}:{tag}", image_id=image_id):
            tagged = self._client.images.get(image_id).tag(repository, tag=tag)
        if not tagged:
            raise ContainerRuntimeError(
                f"Docker refused to tag {image_id} as {repository}:{tag}",
                image_id=image_id,
            )

    def inspect_image(self, reference: str) -> ImageInfo:
        with _docker_call(f"inspect image {reference}"):
            image = self._client.images.get(reference)
        return ImageInfo(id=image.id, tags=list(image.tags))

    # -------------------------
    # CONTAINERS
    # -------------------------

    def create_container(
        self,
        image: str,
        command: Optional[List[str]] = None,
        environment: Optional[Dict[str, str]] = None,
        mounts: Optional[Dict[str, str]] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        container_config = {
            "image": image,
            "labels": dict(labels or {}),
        }

        # Only override the image command when asked
        if command:
            container_config["command"] = command

        if environment:
            container_config["environment"] = dict(environment)

        if mounts:
            container_config["volumes"] = {
                source: {"bind": target, "mode": "rw"}
                for source, target in mounts.items()
            }

        with _docker_call(f"create container from {image}"):
            container = self._client.containers.create(**container_config)
        logger.info(f"Container created: {container.id[:12]} ({image})")
        return container.id

    def start_container(self, container_id: str) -> None:
        with _docker_call(f"start container {container_id}", container_id=container_id):
            self._client.containers.get(container_id).start()

    def wait_container(self, container_id: str, timeout: Optional[float] = None) -> int:
        with _docker_call(f"wait for container {container_id}", container_id=container_id):
            result = self._client.containers.get(container_id).wait(timeout=timeout)
        return int(result.get("StatusCode", -1))

    def inspect_container(self, container_id: str) -> ContainerInfo:
        with _docker_call(f"inspect container {container_id}", container_id=container_id):
            container = self._client.containers.get(container_id)

        exit_code = None
        if container.status in ("exited", "dead"):
            exit_code = container.attrs.get("State", {}).get("ExitCode")
        return ContainerInfo(id=container.id, status=container.status, exit_code=exit_code)

    def remove_container(self, container_id: str, force: bool = False) -> None:
        with _docker_call(f"remove container {container_id}", container_id=container_id):
            self._client.containers.get(container_id).remove(force=force)

    def close(self) -> None:
        self._client.close()
