"""Legacy schedule detection, purge and migration.

A schedule entry is *legacy* when it still points at the retired job
aggregator or runs on a cadence other than weekly. Legacy entries must never
be dispatched. ``reconcile`` deletes them for good; ``migrate`` rewrites them
onto the current weekly configuration instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field

from core.errors import InvalidScheduleState
from schemas.base import utcnow
from schemas.config import CanonicalWeeklyTags, ReconcileConfig
from storage.documents import Document

if TYPE_CHECKING:
    from scheduling.store import SearchScheduleStore

logger = structlog.get_logger()

# Tag fields checked for deprecated tokens
_TAG_FIELDS = ("search_type", "search_approach", "quality_level")


class Classification(str, Enum):
    """Reconciliation verdict for one entry."""

    VALID = "valid"
    LEGACY = "legacy"


class LegacyEntrySummary(BaseModel):
    """What a purge would remove, for the operator to review."""

    id: str
    user_id: str | None = None
    resume_name: str | None = None
    search_type: str | None = None
    created_at: str | None = None
    reasons: list[str] = Field(default_factory=list)


class ReconcileReport(BaseModel):
    """Counts from one reconciliation pass."""

    scanned: int = 0
    legacy_found: int = 0
    deleted: int = 0
    remaining: int = 0
    dry_run: bool = False
    preview: list[LegacyEntrySummary] = Field(default_factory=list)


def _as_document(entry: BaseModel | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(entry, BaseModel):
        return entry.model_dump(mode="json")
    return entry


class ScheduleReconciler:
    """Single place that decides whether a schedule entry is legacy."""

    def __init__(
        self,
        config: ReconcileConfig | None = None,
        canonical: CanonicalWeeklyTags | None = None,
    ) -> None:
        self.config = config or ReconcileConfig()
        self.canonical = canonical or CanonicalWeeklyTags()
        self._tokens = [t.lower() for t in self.config.deprecated_tokens if t]
        self._frequencies = {f.lower() for f in self.config.allowed_frequencies}

    def _deprecated_token(self, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        lowered = value.lower()
        return next((t for t in self._tokens if t in lowered), None)

    def reasons(self, entry: BaseModel | Mapping[str, Any]) -> list[str]:
        """Every reason the entry is legacy; empty when it is valid."""
        doc = _as_document(entry)
        found: list[str] = []

        for field in _TAG_FIELDS:
            token = self._deprecated_token(doc.get(field))
            if token:
                found.append(f"{field} references deprecated source '{token}'")

        schedule = doc.get("schedule") or {}
        frequency = schedule.get("frequency") if isinstance(schedule, Mapping) else None
        if frequency is not None and str(frequency).strip().lower() not in self._frequencies:
            found.append(f"frequency '{frequency}' is not allowed")

        for job in doc.get("jobs_found") or []:
            if not isinstance(job, Mapping):
                continue
            token = self._deprecated_token(job.get("api_source"))
            if token:
                found.append(f"jobs_found contains results from deprecated source '{token}'")
                break

        return found

    def classify(self, entry: BaseModel | Mapping[str, Any]) -> Classification:
        return Classification.LEGACY if self.reasons(entry) else Classification.VALID

    def is_legacy(self, doc: Mapping[str, Any]) -> bool:
        """Document-store filter form of :meth:`classify`."""
        return self.classify(doc) is Classification.LEGACY

    def ensure_schedulable(self, entry: BaseModel | Mapping[str, Any]) -> None:
        """Raise InvalidScheduleState for legacy configuration."""
        found = self.reasons(entry)
        if found:
            doc = _as_document(entry)
            raise InvalidScheduleState(doc.get("id"), found)

    def _summary(self, doc: Document) -> LegacyEntrySummary:
        created = doc.get("created_at")
        return LegacyEntrySummary(
            id=str(doc.get("id")),
            user_id=doc.get("user_id"),
            resume_name=doc.get("resume_name"),
            search_type=doc.get("search_type"),
            created_at=created.isoformat() if isinstance(created, datetime) else created,
            reasons=self.reasons(doc),
        )

    def preview(self, store: SearchScheduleStore) -> list[LegacyEntrySummary]:
        """Entries a purge would delete, without touching anything."""
        return [self._summary(doc) for doc in store.documents.find(self.is_legacy)]

    def reconcile(self, store: SearchScheduleStore, dry_run: bool = False) -> ReconcileReport:
        """Count, then permanently delete, every legacy entry.

        The delete predicate is re-evaluated inside the bulk delete, so an
        entry fixed between the count and the delete survives, and valid
        entries are never removed.
        """
        documents = store.documents
        scanned = documents.count()
        legacy_docs = documents.find(self.is_legacy)
        report = ReconcileReport(
            scanned=scanned,
            legacy_found=len(legacy_docs),
            remaining=scanned,
            dry_run=dry_run,
            preview=[self._summary(doc) for doc in legacy_docs],
        )
        logger.info(
            "Schedule reconciliation scan",
            scanned=report.scanned,
            legacy_found=report.legacy_found,
            dry_run=dry_run,
        )

        if dry_run or not legacy_docs:
            return report

        logger.warning(
            "Deleting legacy schedule entries - deleted entries cannot be recovered",
            count=report.legacy_found,
        )
        report.deleted = documents.delete_many(self.is_legacy)
        report.remaining = documents.count()
        logger.info(
            "Schedule reconciliation complete",
            deleted=report.deleted,
            remaining=report.remaining,
        )
        return report

    def _migration_patch(self, doc: Document) -> Document:
        jobs = []
        for job in doc.get("jobs_found") or []:
            if isinstance(job, Mapping) and self._deprecated_token(job.get("api_source")):
                job = {**job, "api_source": self.canonical.api_source}
            jobs.append(job)
        return {
            "search_type": self.canonical.search_type,
            "search_approach": self.canonical.search_approach,
            "quality_level": self.canonical.quality_level,
            "schedule.frequency": "weekly",
            "jobs_found": jobs,
            "updated_at": utcnow().isoformat(),
        }

    def migrate(self, store: SearchScheduleStore) -> int:
        """Rewrite legacy entries onto the canonical weekly configuration.

        Non-destructive alternative to :meth:`reconcile`. Returns the number
        of entries rewritten.
        """
        migrated = 0
        for doc in store.documents.find(self.is_legacy):
            patch = self._migration_patch(doc)
            if store.documents.update_where(doc["id"], self.is_legacy, patch):
                migrated += 1
        logger.info("Legacy schedule entries migrated", migrated=migrated)
        return migrated
