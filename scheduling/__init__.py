"""Recurring search schedules: storage, cadence and legacy reconciliation."""

from scheduling.cadence import next_weekly_run, week_start
from scheduling.reconciler import (
    Classification,
    LegacyEntrySummary,
    ReconcileReport,
    ScheduleReconciler,
)
from scheduling.store import SearchScheduleStore

__all__ = [
    "Classification",
    "LegacyEntrySummary",
    "ReconcileReport",
    "ScheduleReconciler",
    "SearchScheduleStore",
    "next_weekly_run",
    "week_start",
]
