"""Configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigValidationError
from schemas.config import AgentsConfig, SchedulingConfig


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    store_dir: str | None = "./data/store"
    recruiter_database_url: str = "sqlite:///./data/recruiters.db"

    # Config files
    agents_path: str = "config/agents.yaml"
    scheduling_path: str = "config/scheduling.yaml"

    # LLM
    llm_model: str = "gpt-4o-mini"

    # Dispatch
    agent_timeout_seconds: float = 30.0
    agent_max_attempts: int = 3
    retry_backoff_multiplier: float = 1.0
    retry_backoff_min_seconds: float = 1.0
    retry_backoff_max_seconds: float = 10.0
    discovery_rate_limit: float = 2.0

    # Scheduling
    worker_pool_size: int = 4
    tick_interval_seconds: float = 3600.0
    default_discovery_agent: str = "job-discovery-v1"

    # Recruiter search
    max_page_size: int = 100
    max_query_length: int = 200

    # Runtime
    dry_run: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("agent_max_attempts", "worker_pool_size", mode="before")
    @classmethod
    def _at_least_one(cls, v: Any) -> int:
        value = int(v)
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("store_dir", mode="before")
    @classmethod
    def _blank_store_is_memory(cls, v: Any) -> Any:
        # An empty STORE_DIR keeps documents in memory only
        if isinstance(v, str) and not v.strip():
            return None
        return v


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if data is not None else {}


def _validated(model: type[BaseModel], path: Path) -> Any:
    try:
        return model(**_load_yaml(path))
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid {path.name}", errors=e.errors()) from e
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Unreadable {path.name}: {e}") from e


def load_scheduling_config(path: Path) -> SchedulingConfig:
    """Load scheduling configuration from YAML file (defaults if absent)."""
    return _validated(SchedulingConfig, path)


def load_agents_config(path: Path) -> AgentsConfig:
    """Load agent seed records from YAML file (empty if absent)."""
    config = _validated(AgentsConfig, path)
    names = [a.name for a in config.agents]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigValidationError(
            f"Duplicate agent names in {path.name}: {', '.join(duplicates)}"
        )
    return config


def load_config(
    settings: Settings | None = None,
    agents_path: Path | None = None,
    scheduling_path: Path | None = None,
) -> tuple[Settings, SchedulingConfig, AgentsConfig]:
    """Load all configuration.

    Returns:
        Tuple of (Settings, SchedulingConfig, AgentsConfig)
    """
    settings = settings or Settings()
    scheduling = load_scheduling_config(
        scheduling_path or Path(settings.scheduling_path)
    )
    agents = load_agents_config(agents_path or Path(settings.agents_path))
    return settings, scheduling, agents


def snapshot_config(settings: Settings, scheduling: SchedulingConfig) -> dict[str, Any]:
    """Create a serializable snapshot of the current configuration."""
    return {
        "settings": settings.model_dump(mode="json"),
        "scheduling": scheduling.model_dump(mode="json"),
    }
