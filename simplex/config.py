#simplex\config.py

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SimplexSettings(BaseSettings):
    """Simplex configuration from SIMPLEX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SIMPLEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # State store
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".simplex")
    sqlite_busy_timeout: float = 30.0
    echo_sql: bool = False

    # Builds
    image_namespace: str = "simplex"
    # None queues concurrent builds of a component; 0 fails fast
    build_lock_timeout: Optional[float] = None

    # Docker
    docker_timeout: int = 120


settings = SimplexSettings()
