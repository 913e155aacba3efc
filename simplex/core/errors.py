#simplex\core\errors.py

from typing import Optional, Sequence


# -----------------------------
# Base Errors
# -----------------------------

class SimplexError(Exception):
    """Base class for all simplex errors."""

    def __init__(
        self,
        message: str = "",
        *,
        image_id: Optional[str] = None,
        container_id: Optional[str] = None,
        tag: Optional[str] = None,
    ):
        super().__init__(message)
        self.image_id = image_id
        self.container_id = container_id
        self.tag = tag


# -----------------------------
# Validation Errors
# -----------------------------

class SimplexValidationError(SimplexError):
    """Invalid input to the registry, reader or managers."""
    pass


class InvalidComponentType(SimplexValidationError):
    pass


class MalformedSpecification(SimplexValidationError):
    """Specification document could not be read or violates its schema."""
    pass


class UnknownMountTarget(SimplexError):
    """Execution mount names a container path the specification never declared."""

    def __init__(self, targets: Sequence[str], build_id: str):
        self.targets = list(targets)
        self.build_id = build_id
        super().__init__(
            f"Mount targets not declared by specification of build {build_id}: "
            f"{', '.join(self.targets)}"
        )


# -----------------------------
# Lookup Errors
# -----------------------------

class SimplexNotFound(SimplexError):
    pass


class ComponentNotFound(SimplexNotFound):
    pass


class BuildNotFound(SimplexNotFound):
    pass


class ExecutionNotFound(SimplexNotFound):
    pass


# -----------------------------
# Conflict Errors
# -----------------------------

class SimplexConflictError(SimplexError):
    pass


class DuplicateComponentError(SimplexConflictError):
    pass


class BuildConflictError(SimplexConflictError):
    """Another build of the same component holds the build lock."""
    pass


# -----------------------------
# Runtime Errors
# -----------------------------

class ContainerRuntimeError(SimplexError):
    """A call to the container runtime failed."""
    pass


class BuildFailed(ContainerRuntimeError):
    pass


class OperationCancelled(SimplexError):
    pass


# -----------------------------
# Persistence Errors
# -----------------------------

class PersistenceError(SimplexError):
    pass


class StateError(SimplexError):
    pass


class StateAlreadyInitialized(StateError):
    pass


class StateNotInitialized(StateError):
    pass
