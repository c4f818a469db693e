"""Recruiter directory search and outreach tracking."""

from matching.engine import RecruiterMatchEngine, RecruiterQuery
from matching.tables import Base, Company, Industry, Location, OutreachHistory, Recruiter

__all__ = [
    "Base",
    "Company",
    "Industry",
    "Location",
    "OutreachHistory",
    "Recruiter",
    "RecruiterMatchEngine",
    "RecruiterQuery",
]
