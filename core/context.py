"""Run context for scheduler ticks."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from core.ids import generate_run_id

if TYPE_CHECKING:
    from schemas.schedule import SearchScheduleEntry


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    """Status of a scheduler run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    """What happened to one schedule entry."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunMetrics(BaseModel):
    """Counters collected during a tick."""

    num_due: int = 0
    num_dispatched: int = 0
    num_succeeded: int = 0
    num_failed: int = 0
    num_skipped: int = 0
    num_legacy_skipped: int = 0
    num_jobs_appended: int = 0


class StageLog(BaseModel):
    """Timing and counts for one stage of a tick."""

    stage: str
    started_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None
    status: str = "running"
    items_in: int = 0
    items_out: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float | None = None

    def finish(self, items_out: int = 0, errors: list[str] | None = None, status: str | None = None) -> None:
        self.completed_at = _now()
        self.items_out = items_out
        self.errors = list(errors or [])
        self.status = status or ("partial" if self.errors else "completed")
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


class EntryOutcome(BaseModel):
    """Result of handling one schedule entry in a tick."""

    schedule_id: str
    agent_name: str | None = None
    status: OutcomeStatus
    jobs_appended: int = 0
    error: str | None = None

    @classmethod
    def succeeded(cls, entry: SearchScheduleEntry, jobs_appended: int) -> EntryOutcome:
        return cls(
            schedule_id=entry.id,
            agent_name=entry.agent_name,
            status=OutcomeStatus.SUCCEEDED,
            jobs_appended=jobs_appended,
        )

    @classmethod
    def failed(cls, entry: SearchScheduleEntry, error: str) -> EntryOutcome:
        return cls(
            schedule_id=entry.id,
            agent_name=entry.agent_name,
            status=OutcomeStatus.FAILED,
            error=error,
        )

    @classmethod
    def skipped(cls, entry: SearchScheduleEntry, reason: str) -> EntryOutcome:
        return cls(
            schedule_id=entry.id,
            agent_name=entry.agent_name,
            status=OutcomeStatus.SKIPPED,
            error=reason,
        )


class RunContext(BaseModel):
    """State of one scheduler tick, from boot to summary.

    Outcomes are folded into ``metrics`` as they are recorded; the final
    status is derived from those counters and the ``cancelled`` flag.
    """

    run_id: str
    started_at: datetime
    status: RunStatus = RunStatus.PENDING
    completed_at: datetime | None = None
    dry_run: bool = False
    cancelled: bool = False

    metrics: RunMetrics = Field(default_factory=RunMetrics)
    stages: list[StageLog] = Field(default_factory=list)
    outcomes: list[EntryOutcome] = Field(default_factory=list)

    @classmethod
    def boot(cls, run_id: str | None = None, dry_run: bool = False) -> RunContext:
        return cls(
            run_id=run_id or generate_run_id(),
            started_at=_now(),
            status=RunStatus.RUNNING,
            dry_run=dry_run,
        )

    def stage(self, name: str, items_in: int = 0) -> StageLog:
        """Open a stage; the caller finishes it with :meth:`StageLog.finish`."""
        log = StageLog(stage=name, items_in=items_in)
        self.stages.append(log)
        return log

    def record(self, outcome: EntryOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status is OutcomeStatus.SUCCEEDED:
            self.metrics.num_succeeded += 1
            self.metrics.num_jobs_appended += outcome.jobs_appended
        elif outcome.status is OutcomeStatus.FAILED:
            self.metrics.num_failed += 1
        else:
            self.metrics.num_skipped += 1

    def errors(self) -> list[str]:
        return [
            f"{o.schedule_id}: {o.error}"
            for o in self.outcomes
            if o.status is OutcomeStatus.FAILED
        ]

    def final_status(self) -> RunStatus:
        if self.cancelled:
            return RunStatus.CANCELLED
        if self.metrics.num_failed:
            return RunStatus.PARTIAL if self.metrics.num_succeeded else RunStatus.FAILED
        return RunStatus.COMPLETED

    def complete_run(self, status: RunStatus | None = None) -> None:
        self.status = status or self.final_status()
        self.completed_at = _now()

    def summary(self) -> dict[str, Any]:
        """Serializable digest of the tick for logs."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "metrics": self.metrics.model_dump(),
            "stages": [
                {
                    "stage": log.stage,
                    "status": log.status,
                    "items_in": log.items_in,
                    "items_out": log.items_out,
                    "duration": log.duration_seconds,
                    "errors": len(log.errors),
                }
                for log in self.stages
            ],
        }
