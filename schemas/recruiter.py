"""Recruiter directory and outreach schemas."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import BaseSchema


class OutreachStatus(str, Enum):
    """Contact state of one (user, recruiter) pair."""

    NOT_CONTACTED = "not_contacted"
    DRAFTED = "drafted"
    CONTACTED = "contacted"
    RESPONDED = "responded"
    DECLINED = "declined"


class CompanySummary(BaseSchema):
    """Company fields shown next to a recruiter."""

    name: str | None = None
    website: str | None = None
    size: str | None = None
    logo_url: str | None = None


class LocationSummary(BaseSchema):
    """Location fields shown next to a recruiter."""

    city: str | None = None
    state: str | None = None
    country: str | None = None


class OutreachSummary(BaseSchema):
    """Caller's outreach state for a recruiter (empty if never contacted)."""

    has_contacted: bool = False
    last_contact_date: datetime | None = None
    status: OutreachStatus | None = None


class RecruiterMatch(BaseSchema):
    """One row of a recruiter search."""

    id: int
    first_name: str | None = None
    last_name: str | None = None
    full_name: str = ""
    email: str | None = None
    title: str | None = None
    linkedin_url: str | None = None
    experience_years: int | None = None
    rating: float | None = None
    last_active_date: datetime | None = None
    company: CompanySummary = Field(default_factory=CompanySummary)
    industry: str | None = None
    location: LocationSummary = Field(default_factory=LocationSummary)
    outreach: OutreachSummary = Field(default_factory=OutreachSummary)


class RecruiterPage(BaseSchema):
    """A page of recruiter search results.

    ``total_count`` comes from a separate count query; a small skew against
    ``results`` is possible when the directory is written concurrently.
    """

    results: list[RecruiterMatch] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size


class OutreachRecord(BaseSchema):
    """Persisted outreach state for a (user, recruiter) pair."""

    user_id: str
    recruiter_id: int
    status: OutreachStatus
    last_contact_date: datetime | None = None
