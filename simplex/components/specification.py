"""Pydantic models and reader for component run specifications.

A specification is a JSON or YAML document:

    run:
      mountpoints:
        - mountpoint: /simplex/outputs/outputs.txt
      env:
        MY_ENV: hello

Unknown keys are allowed so specifications can carry fields simplex does
not consume.
"""

from pathlib import Path
from typing import IO, Dict, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from simplex.core.errors import MalformedSpecification


class Mountpoint(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    mountpoint: StrictStr

    @field_validator("mountpoint")
    @classmethod
    def must_be_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"mountpoint must be an absolute container path, got {value!r}")
        return value


class RunSpecification(BaseModel):
    model_config = ConfigDict(extra="allow")

    mountpoints: List[Mountpoint] = Field(default_factory=list)
    env: Dict[StrictStr, StrictStr] = Field(default_factory=dict)

    @field_validator("mountpoints")
    @classmethod
    def unique_targets(cls, value: List[Mountpoint]) -> List[Mountpoint]:
        seen = set()
        for mountpoint in value:
            if mountpoint.mountpoint in seen:
                raise ValueError(f"duplicate mountpoint {mountpoint.mountpoint!r}")
            seen.add(mountpoint.mountpoint)
        return value


class Specification(BaseModel):
    model_config = ConfigDict(extra="allow")

    run: RunSpecification

    @property
    def mountpoints(self) -> List[str]:
        return [m.mountpoint for m in self.run.mountpoints]

    @property
    def env(self) -> Dict[str, str]:
        return dict(self.run.env)


def read_specification(source: Union[str, Path, IO]) -> Specification:
    """Parse a specification from a file path or an open stream."""
    if isinstance(source, (str, Path)):
        origin = str(source)
        try:
            raw_text = Path(source).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedSpecification(f"Cannot read specification {origin}: {exc}") from exc
    else:
        origin = getattr(source, "name", "<stream>")
        try:
            raw_text = source.read()
            if isinstance(raw_text, bytes):
                raw_text = raw_text.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedSpecification(f"Cannot read specification {origin}: {exc}") from exc

    return parse_specification(raw_text, origin=origin)


def parse_specification(raw_text: str, origin: str = "<string>") -> Specification:
    # JSON documents are valid YAML
    try:
        raw_data = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise MalformedSpecification(f"Specification {origin} is not valid JSON/YAML: {exc}") from exc

    if not isinstance(raw_data, dict):
        raise MalformedSpecification(f"Specification {origin} must be a mapping at the top level")

    try:
        return Specification.model_validate(raw_data)
    except ValidationError as exc:
        raise MalformedSpecification(f"Specification {origin} is invalid: {exc}") from exc
