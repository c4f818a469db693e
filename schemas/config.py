"""Configuration file schemas."""

from typing import Any

from pydantic import Field, field_validator

from .agent import AgentType
from .base import BaseSchema
from .schedule import parse_preferred_time


# --- Scheduling Config ---


class ReconcileConfig(BaseSchema):
    """Deny-list used to tell legacy schedule entries from current ones.

    Adding a new deprecated marker only touches this block.
    """

    deprecated_tokens: list[str] = Field(default_factory=lambda: ["adzuna"])
    allowed_frequencies: list[str] = Field(default_factory=lambda: ["weekly"])


class CanonicalWeeklyTags(BaseSchema):
    """Tags written onto entries rewritten by a migration."""

    search_type: str = "weekly_ai_discovery"
    search_approach: str = "3-phase-intelligent-active-jobs-weekly"
    quality_level: str = "active-jobs-weekly-enhanced"
    api_source: str = "active_jobs_db"


class SchedulingConfig(BaseSchema):
    """Schema for scheduling.yaml."""

    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    canonical: CanonicalWeeklyTags = Field(default_factory=CanonicalWeeklyTags)
    default_weekly_limit: int = Field(default=50, ge=1)
    default_day_of_week: int = Field(default=0, ge=0, le=6)
    default_preferred_time: str = Field(default="09:00", pattern=r"^\d{2}:\d{2}$")

    @field_validator("default_preferred_time")
    @classmethod
    def _clock_time(cls, v: str) -> str:
        parse_preferred_time(v)
        return v


# --- Agents Config ---


class ApiBindingEntry(BaseSchema):
    """API binding as written in agents.yaml."""

    endpoint: str | None = None
    credential_ref: str | None = None
    model_name: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class AgentSeedEntry(BaseSchema):
    """Single agent seed entry."""

    name: str = Field(..., min_length=1, max_length=120)
    agent_type: AgentType
    description: str | None = None
    version: str = "1.0.0"
    is_active: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
    api: ApiBindingEntry = Field(default_factory=ApiBindingEntry)


class AgentsConfig(BaseSchema):
    """Schema for agents.yaml."""

    agents: list[AgentSeedEntry] = Field(default_factory=list)
