"""Agent record schemas."""

import os
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, SecretStr

from .base import BaseSchema, TimestampMixin


class AgentType(str, Enum):
    """Closed set of agent capabilities."""

    RESUME_ANALYSIS = "ResumeAnalysis"
    JOB_MATCHING = "JobMatching"
    CONTENT_GENERATION = "ContentGeneration"
    JOB_DISCOVERY = "JobDiscovery"


class ApiBinding(BaseSchema):
    """Downstream API an agent talks to.

    ``credential_ref`` names an environment variable. The secret itself is
    only materialized by :meth:`resolve_credential` at call time.
    """

    endpoint: str | None = Field(None, max_length=500, description="Provider endpoint")
    credential_ref: str | None = Field(
        None, repr=False, description="Environment variable holding the API key"
    )
    model_name: str | None = Field(None, description="Model identifier")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="Extra provider parameters"
    )

    def resolve_credential(self) -> SecretStr | None:
        if not self.credential_ref:
            return None
        value = os.environ.get(self.credential_ref)
        return SecretStr(value) if value else None


class AgentPerformance(BaseSchema):
    """Live performance stats, updated after every invocation."""

    average_response_time_ms: float = Field(default=0.0, ge=0)
    success_rate: float = Field(default=0.0, ge=0, le=1)
    error_rate: float = Field(default=0.0, ge=0, le=1)
    total_runs: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)

    def with_outcome(self, elapsed_ms: float, succeeded: bool) -> "AgentPerformance":
        """Return the stats after folding in one more invocation."""
        total = self.total_runs + 1
        successes = self.success_count + (1 if succeeded else 0)
        errors = self.error_count + (0 if succeeded else 1)
        average = self.average_response_time_ms + (
            max(elapsed_ms, 0.0) - self.average_response_time_ms
        ) / total
        return AgentPerformance(
            average_response_time_ms=average,
            success_rate=successes / total,
            error_rate=errors / total,
            total_runs=total,
            success_count=successes,
            error_count=errors,
        )


class AgentRecordBase(BaseSchema):
    """Fields an administrator sets."""

    name: str = Field(..., min_length=1, max_length=120, description="Unique agent name")
    agent_type: AgentType = Field(..., description="Capability selecting the behavior")
    description: str | None = None
    config: dict[str, Any] = Field(
        default_factory=dict, description="Agent-type-specific configuration"
    )
    api: ApiBinding = Field(default_factory=ApiBinding)
    is_active: bool = Field(default=True, description="Inactive agents are never dispatched")
    version: str = Field(default="1.0.0")


class AgentRecordUpdate(BaseSchema):
    """Explicit reconfiguration (all fields optional)."""

    description: str | None = None
    config: dict[str, Any] | None = None
    api: ApiBinding | None = None
    version: str | None = None


class AgentRecord(AgentRecordBase, TimestampMixin):
    """Full agent record as persisted in the document store."""

    last_run_at: datetime | None = None
    performance: AgentPerformance = Field(default_factory=AgentPerformance)

    def public_view(self) -> dict[str, Any]:
        """Serializable view with the credential reference stripped."""
        data = self.model_dump(mode="json")
        data["api"].pop("credential_ref", None)
        return data
