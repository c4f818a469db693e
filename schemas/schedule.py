"""Recurring search schedule schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from core.ids import content_hash, normalize_url

from .base import BaseSchema, TimestampMixin, utcnow


def parse_preferred_time(value: str) -> tuple[int, int]:
    """Parse ``HH:MM`` into (hour, minute)."""
    hours, minutes = value.split(":")
    hour, minute = int(hours), int(minutes)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid preferred time: {value!r}")
    return hour, minute


class ScheduleStatus(str, Enum):
    """Lifecycle status of a schedule entry."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Cadence(BaseSchema):
    """When the entry runs.

    ``frequency`` is kept as free text so legacy documents still load;
    anything other than ``weekly`` is rejected by the reconciler.
    """

    frequency: str = "weekly"
    is_scheduled: bool = True
    day_of_week: int = Field(default=0, ge=0, le=6, description="Monday=0")
    preferred_time: str = Field(default="09:00", pattern=r"^\d{2}:\d{2}$")
    next_scheduled_run: datetime | None = None
    pause_until: datetime | None = None

    @field_validator("preferred_time")
    @classmethod
    def _clock_time(cls, v: str) -> str:
        parse_preferred_time(v)
        return v


class SearchCriteria(BaseSchema):
    """What the discovery agent should look for."""

    job_title: str | None = None
    skills: list[str] = Field(default_factory=list)
    location: str | None = None
    remote_work: bool = True
    experience_level: str | None = None
    job_types: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)


class DiscoveredJob(BaseSchema):
    """Summary of one job surfaced by a discovery run."""

    title: str
    company: str | None = None
    location: str | None = None
    source_url: str | None = None
    match_score: float | None = Field(None, ge=0, le=1)
    api_source: str = "active_jobs_db"
    found_at: datetime = Field(default_factory=utcnow)

    @property
    def job_key(self) -> str:
        """Stable identity used to de-duplicate discovery history."""
        if self.source_url:
            return content_hash(normalize_url(self.source_url))
        parts = [self.title, self.company or "", self.location or ""]
        return content_hash("|".join(p.strip().lower() for p in parts))


class SearchScheduleCreate(BaseSchema):
    """Schema for a user creating a recurring search."""

    user_id: str = Field(..., min_length=1)
    resume_id: str | None = None
    resume_name: str | None = None
    agent_name: str | None = Field(None, description="Discovery agent to dispatch")
    search_criteria: SearchCriteria = Field(default_factory=SearchCriteria)
    search_type: str = "weekly_ai_discovery"
    search_approach: str = "3-phase-intelligent-active-jobs-weekly"
    quality_level: str = "active-jobs-weekly-enhanced"
    schedule: Cadence = Field(default_factory=Cadence)
    weekly_limit: int | None = Field(None, ge=1)


class SearchScheduleEntry(BaseSchema, TimestampMixin):
    """Full schedule entry as persisted in the document store."""

    id: str
    user_id: str
    resume_id: str | None = None
    resume_name: str | None = None
    agent_name: str
    search_criteria: SearchCriteria = Field(default_factory=SearchCriteria)
    search_type: str = "weekly_ai_discovery"
    search_approach: str = "3-phase-intelligent-active-jobs-weekly"
    quality_level: str = "active-jobs-weekly-enhanced"
    status: ScheduleStatus = ScheduleStatus.RUNNING
    schedule: Cadence = Field(default_factory=Cadence)

    # Weekly bookkeeping
    weekly_limit: int = Field(default=50, ge=1)
    jobs_found_this_week: int = Field(default=0, ge=0)
    current_week_start: datetime | None = None
    total_jobs_found: int = Field(default=0, ge=0)
    last_search_date: datetime | None = None

    # Failure bookkeeping
    last_error: str | None = None
    error_count: int = Field(default=0, ge=0)

    jobs_found: list[DiscoveredJob] = Field(default_factory=list)


class WeeklyProgress(BaseSchema):
    """How far an entry is through its weekly quota."""

    week_start: datetime
    jobs_found: int
    weekly_limit: int
    remaining: int
    percentage: int
    is_complete: bool


class ScheduleStatistics(BaseSchema):
    """Per-user rollup over every stored entry, legacy ones included."""

    total_searches: int = 0
    active_searches: int = 0
    legacy_searches: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    total_jobs_found: int = 0
    avg_jobs_per_search: float = 0.0
    avg_jobs_per_week: float = 0.0
