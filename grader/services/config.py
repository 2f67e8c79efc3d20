from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraderConfig(BaseSettings):
    """Grading service settings: cache backend, single-flight, timeouts."""

    model_config = SettingsConfigDict(
        env_prefix="GRADER_",
        env_file=".env",
        extra="ignore",
    )

    cache_backend: Literal["memory", "sqlite", "none"] = Field(default="memory")
    cache_path: str = Field(default="data/evaluation_cache.db")
    single_flight: bool = Field(default=True)
    # Seconds; 0 disables the evaluate deadline
    evaluate_timeout: float = Field(default=0.0, ge=0)
    time_source_url: Optional[str] = Field(default=None)
    log_level: str = Field(default="INFO")


def get_grader_config() -> GraderConfig:
    """Load grader config from the environment."""
    return GraderConfig()
