"""Search schedule entries on top of the document store."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from core.errors import NotFound
from core.ids import new_document_id
from schemas.base import utcnow
from schemas.config import SchedulingConfig
from schemas.schedule import (
    DiscoveredJob,
    ScheduleStatus,
    SearchScheduleCreate,
    SearchScheduleEntry,
    ScheduleStatistics,
    WeeklyProgress,
)
from scheduling.cadence import is_due, next_weekly_run, week_start
from scheduling.reconciler import ScheduleReconciler
from storage.documents import Document, DocumentStore

logger = structlog.get_logger()

# Statuses that keep an agent referenced
ACTIVE_STATUSES = frozenset({ScheduleStatus.RUNNING.value, ScheduleStatus.PAUSED.value})


class SearchScheduleStore:
    """Persistence and bookkeeping for recurring searches.

    Raw documents are exposed through ``documents`` for reconciliation, which
    has to look at entries that no longer validate against the current model.
    """

    def __init__(
        self,
        documents: DocumentStore,
        scheduling: SchedulingConfig | None = None,
        reconciler: ScheduleReconciler | None = None,
        default_agent: str = "job-discovery-v1",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.documents = documents
        self.scheduling = scheduling or SchedulingConfig()
        self.reconciler = reconciler or ScheduleReconciler(
            self.scheduling.reconcile, self.scheduling.canonical
        )
        self.default_agent = default_agent
        self.clock = clock

    @staticmethod
    def _to_doc(entry: SearchScheduleEntry) -> Document:
        return entry.model_dump(mode="json")

    def _parse(self, doc: Document) -> SearchScheduleEntry | None:
        try:
            return SearchScheduleEntry.model_validate(doc)
        except ValidationError as e:
            logger.warning(
                "Skipping unreadable schedule entry",
                schedule_id=doc.get("id"),
                errors=e.error_count(),
            )
            return None

    def create(self, request: SearchScheduleCreate) -> SearchScheduleEntry:
        """Create a running weekly search.

        Raises:
            InvalidScheduleState: the request carries legacy configuration
        """
        self.reconciler.ensure_schedulable(request)

        now = self.clock()
        cadence = request.schedule.model_copy()
        if "day_of_week" not in request.schedule.model_fields_set:
            cadence.day_of_week = self.scheduling.default_day_of_week
        if "preferred_time" not in request.schedule.model_fields_set:
            cadence.preferred_time = self.scheduling.default_preferred_time
        if cadence.next_scheduled_run is None:
            cadence.next_scheduled_run = next_weekly_run(
                now, cadence.day_of_week, cadence.preferred_time
            )

        entry = SearchScheduleEntry(
            id=new_document_id(),
            user_id=request.user_id,
            resume_id=request.resume_id,
            resume_name=request.resume_name,
            agent_name=request.agent_name or self.default_agent,
            search_criteria=request.search_criteria,
            search_type=request.search_type,
            search_approach=request.search_approach,
            quality_level=request.quality_level,
            schedule=cadence,
            weekly_limit=request.weekly_limit or self.scheduling.default_weekly_limit,
            current_week_start=week_start(now),
            created_at=now,
        )
        self.documents.insert_one(self._to_doc(entry))
        logger.info(
            "Schedule created",
            schedule_id=entry.id,
            user_id=entry.user_id,
            agent=entry.agent_name,
            next_run=cadence.next_scheduled_run.isoformat(),
        )
        return entry

    def get(self, schedule_id: str) -> SearchScheduleEntry:
        doc = self.documents.get(schedule_id)
        if doc is None:
            raise NotFound("schedule", schedule_id)
        return SearchScheduleEntry.model_validate(doc)

    def list_for_user(self, user_id: str) -> list[SearchScheduleEntry]:
        docs = self.documents.find(lambda d: d.get("user_id") == user_id)
        return [e for e in (self._parse(d) for d in docs) if e is not None]

    def delete(self, schedule_id: str, user_id: str | None = None) -> None:
        """Delete one entry; with ``user_id`` only the owner's entry matches."""

        def match(doc: Document) -> bool:
            if doc.get("id") != schedule_id:
                return False
            return user_id is None or doc.get("user_id") == user_id

        if self.documents.delete_many(match) == 0:
            raise NotFound("schedule", schedule_id)
        logger.info("Schedule deleted", schedule_id=schedule_id)

    def find_due(
        self, now: datetime | None = None, include_legacy: bool = False
    ) -> list[SearchScheduleEntry]:
        """Running, scheduled entries whose next run has come and are not paused.

        Legacy entries are left out unless ``include_legacy`` is set, so the
        caller can account for them.
        """
        now = now or self.clock()
        due: list[SearchScheduleEntry] = []
        for doc in self.documents.find(lambda d: d.get("status") == ScheduleStatus.RUNNING.value):
            if not include_legacy and self.reconciler.is_legacy(doc):
                continue
            entry = self._parse(doc)
            if entry is None or not entry.schedule.is_scheduled:
                continue
            if is_due(now, entry.schedule.next_scheduled_run, entry.schedule.pause_until):
                due.append(entry)
        return due

    def active_ids_for_agent(self, agent_name: str) -> list[str]:
        docs = self.documents.find(
            lambda d: d.get("agent_name") == agent_name and d.get("status") in ACTIVE_STATUSES
        )
        return [d["id"] for d in docs]

    def _patch(self, schedule_id: str, patch: dict[str, Any]) -> None:
        patch["updated_at"] = self.clock().isoformat()
        if not self.documents.update_one(schedule_id, patch):
            raise NotFound("schedule", schedule_id)

    def pause(self, schedule_id: str, until: datetime | None = None) -> SearchScheduleEntry:
        """Pause indefinitely, or until a given time."""
        self.get(schedule_id)
        if until is None:
            self._patch(schedule_id, {"status": ScheduleStatus.PAUSED.value})
        else:
            self._patch(schedule_id, {"schedule.pause_until": until.isoformat()})
        logger.info("Schedule paused", schedule_id=schedule_id, until=until)
        return self.get(schedule_id)

    def resume(self, schedule_id: str) -> SearchScheduleEntry:
        entry = self.get(schedule_id)
        self.reconciler.ensure_schedulable(entry)
        now = self.clock()
        next_run = next_weekly_run(now, entry.schedule.day_of_week, entry.schedule.preferred_time)
        self._patch(
            schedule_id,
            {
                "status": ScheduleStatus.RUNNING.value,
                "schedule.pause_until": None,
                "schedule.next_scheduled_run": next_run.isoformat(),
            },
        )
        logger.info("Schedule resumed", schedule_id=schedule_id, next_run=next_run.isoformat())
        return self.get(schedule_id)

    @staticmethod
    def _found_this_week(entry: SearchScheduleEntry, now: datetime) -> int:
        if entry.current_week_start is None or entry.current_week_start < week_start(now):
            return 0
        return entry.jobs_found_this_week

    def remaining_budget(self, entry: SearchScheduleEntry, now: datetime | None = None) -> int:
        """Jobs the entry may still take this week, counting a week rollover."""
        now = now or self.clock()
        return max(entry.weekly_limit - self._found_this_week(entry, now), 0)

    def weekly_progress(self, entry: SearchScheduleEntry, now: datetime | None = None) -> WeeklyProgress:
        """Progress against the weekly limit, counting a week rollover."""
        now = now or self.clock()
        found = self._found_this_week(entry, now)
        return WeeklyProgress(
            week_start=week_start(now),
            jobs_found=found,
            weekly_limit=entry.weekly_limit,
            remaining=max(entry.weekly_limit - found, 0),
            percentage=round(found / entry.weekly_limit * 100),
            is_complete=found >= entry.weekly_limit,
        )

    def statistics(self, user_id: str) -> ScheduleStatistics:
        """Rollup of a user's entries. Works on raw documents so legacy and
        unreadable entries are still counted."""
        docs = self.documents.find(lambda d: d.get("user_id") == user_id)
        if not docs:
            return ScheduleStatistics()

        by_status: dict[str, int] = {}
        for doc in docs:
            status = str(doc.get("status") or "unknown")
            by_status[status] = by_status.get(status, 0) + 1
        total_jobs = sum(int(d.get("total_jobs_found") or 0) for d in docs)
        this_week = sum(int(d.get("jobs_found_this_week") or 0) for d in docs)
        return ScheduleStatistics(
            total_searches=len(docs),
            active_searches=by_status.get(ScheduleStatus.RUNNING.value, 0),
            legacy_searches=sum(1 for d in docs if self.reconciler.is_legacy(d)),
            by_status=by_status,
            total_jobs_found=total_jobs,
            avg_jobs_per_search=round(total_jobs / len(docs), 2),
            avg_jobs_per_week=round(this_week / len(docs), 2),
        )

    def record_success(
        self,
        schedule_id: str,
        jobs: Iterable[DiscoveredJob],
        ran_at: datetime | None = None,
    ) -> int:
        """Fold one discovery run into the entry. Returns jobs appended.

        Jobs already in the history are skipped by job key, so applying the
        same result twice leaves the history unchanged. The weekly counter
        resets when a new week starts and appends stop at the weekly limit.
        """
        ran_at = ran_at or self.clock()
        entry = self.get(schedule_id)

        this_week = week_start(ran_at)
        found_this_week = self._found_this_week(entry, ran_at)
        seen = {job.job_key for job in entry.jobs_found}
        budget = max(entry.weekly_limit - found_this_week, 0)
        appended: list[DiscoveredJob] = []
        for job in jobs:
            if len(appended) >= budget:
                break
            key = job.job_key
            if key in seen:
                continue
            seen.add(key)
            appended.append(job)

        next_run = next_weekly_run(ran_at, entry.schedule.day_of_week, entry.schedule.preferred_time)
        history = entry.jobs_found + appended
        self._patch(
            schedule_id,
            {
                "jobs_found": [j.model_dump(mode="json") for j in history],
                "jobs_found_this_week": found_this_week + len(appended),
                "current_week_start": this_week.isoformat(),
                "total_jobs_found": entry.total_jobs_found + len(appended),
                "last_search_date": ran_at.isoformat(),
                "last_error": None,
                "schedule.next_scheduled_run": next_run.isoformat(),
            },
        )
        logger.info(
            "Schedule run recorded",
            schedule_id=schedule_id,
            appended=len(appended),
            next_run=next_run.isoformat(),
        )
        return len(appended)

    def record_failure(self, schedule_id: str, error: str) -> None:
        """Keep the error on the entry. The next run time is left alone so the
        entry is picked up again on the next tick."""
        entry = self.get(schedule_id)
        self._patch(
            schedule_id,
            {"last_error": error, "error_count": entry.error_count + 1},
        )
