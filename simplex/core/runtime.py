# simplex/core/runtime.py

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from simplex.core.models import ContainerInfo, ImageInfo


# Receives each chunk of build output as it arrives.
LogCallback = Callable[[str], None]


class ContainerRuntime(ABC):
    """
    Capabilities simplex needs from a container engine.

    Every call is blocking and may fail with ContainerRuntimeError.
    Implementations must be safe to share between threads.
    """

    # -------------------------
    # IMAGES
    # -------------------------

    @abstractmethod
    def build_image(
        self,
        context_path: str,
        on_output: Optional[LogCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> str:
        """
        Build an image from a directory context.
        Returns the image ID. Raises BuildFailed if the build errors,
        OperationCancelled if should_stop() returns True mid-build.
        """
        raise NotImplementedError

    @abstractmethod
    def tag_image(self, image_id: str, repository: str, tag: str) -> None:
        """Point repository:tag at image_id, moving it if it already exists."""
        raise NotImplementedError

    @abstractmethod
    def inspect_image(self, reference: str) -> ImageInfo:
        """Resolve a tag or ID. Raises ContainerRuntimeError if unknown."""
        raise NotImplementedError

    # -------------------------
    # CONTAINERS
    # -------------------------

    @abstractmethod
    def create_container(
        self,
        image: str,
        command: Optional[List[str]] = None,
        environment: Optional[Dict[str, str]] = None,
        mounts: Optional[Dict[str, str]] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create (but do not start) a container.
        mounts maps host path -> container path; returns the container ID.
        """
        raise NotImplementedError

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def wait_container(self, container_id: str, timeout: Optional[float] = None) -> int:
        """Block until the container exits and return its exit code."""
        raise NotImplementedError

    @abstractmethod
    def inspect_container(self, container_id: str) -> ContainerInfo:
        raise NotImplementedError

    @abstractmethod
    def remove_container(self, container_id: str, force: bool = False) -> None:
        raise NotImplementedError
