"""Scheduler runner: dispatch due searches, reconcile legacy entries, search recruiters."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

import structlog

from agents import AgentContext, DiscoveryInput, DiscoveryResult
from core.context import EntryOutcome, RunContext, RunStatus
from core.errors import NotFound
from orchestration.runtime import Runtime
from schemas.base import utcnow
from schemas.recruiter import RecruiterPage
from schemas.schedule import SearchScheduleEntry
from scheduling import Classification, ReconcileReport

logger = structlog.get_logger()

# Upper bound of DiscoveryInput.limit
_MAX_DISCOVERY_LIMIT = 500


async def _run_entry(
    runtime: Runtime,
    entry: SearchScheduleEntry,
    ctx: RunContext,
    now: datetime,
) -> EntryOutcome:
    """Dispatch one schedule entry and apply its result.

    Failures are recorded on the entry and returned as an outcome; they never
    propagate to sibling dispatches. An entry deleted while the tick is in
    progress is reported as skipped.
    """
    log = logger.bind(run_id=ctx.run_id, schedule_id=entry.id, agent=entry.agent_name)

    if runtime.reconciler.classify(entry) is Classification.LEGACY:
        ctx.metrics.num_legacy_skipped += 1
        log.warning("Skipping legacy schedule entry", reasons=runtime.reconciler.reasons(entry))
        return EntryOutcome.skipped(entry, "legacy configuration")

    try:
        budget = runtime.schedules.remaining_budget(entry, now)
        if budget == 0:
            # Nothing to fetch this week; move the entry on to its next slot
            runtime.schedules.record_success(entry.id, [], ran_at=now)
            log.info("Weekly limit reached", weekly_limit=entry.weekly_limit)
            return EntryOutcome.skipped(entry, "weekly limit reached")

        payload = DiscoveryInput(
            search_criteria=entry.search_criteria,
            limit=min(budget, _MAX_DISCOVERY_LIMIT),
            exclude_keys=[job.job_key for job in entry.jobs_found],
        )
        context = AgentContext(run_id=ctx.run_id, user_id=entry.user_id, schedule_id=entry.id)

        ctx.metrics.num_dispatched += 1
        result = await runtime.dispatcher.invoke(entry.agent_name, payload, context)
        output: DiscoveryResult = result.output
        appended = runtime.schedules.record_success(entry.id, output.jobs, ran_at=now)
    except NotFound as e:
        if e.kind != "schedule":
            return _record_failure(runtime, entry, e, log)
        log.info("Schedule entry deleted during run")
        return EntryOutcome.skipped(entry, "schedule entry deleted")
    except Exception as e:
        return _record_failure(runtime, entry, e, log)

    return EntryOutcome.succeeded(entry, appended)


def _record_failure(
    runtime: Runtime, entry: SearchScheduleEntry, error: Exception, log: structlog.stdlib.BoundLogger
) -> EntryOutcome:
    log.warning("Schedule run failed", error=str(error), error_type=type(error).__name__)
    try:
        runtime.schedules.record_failure(entry.id, str(error))
    except NotFound:
        log.info("Schedule entry deleted during run")
        return EntryOutcome.skipped(entry, "schedule entry deleted")
    return EntryOutcome.failed(entry, str(error))


async def run_due_schedules_async(
    runtime: Runtime,
    now: datetime | None = None,
    cancel_event: asyncio.Event | None = None,
    run_id: str | None = None,
) -> RunContext:
    """Run one scheduler tick: dispatch every due entry.

    Entries run concurrently, bounded by ``worker_pool_size``. Once
    ``cancel_event`` is set, entries that have not started are skipped;
    dispatches already in flight finish or time out.

    Args:
        runtime: Wired stores, registry and dispatcher
        now: Tick time (defaults to the current UTC time)
        cancel_event: Optional cancellation signal
        run_id: Optional explicit run ID

    Returns:
        RunContext with metrics, stage logs and per-entry outcomes
    """
    run_start = time.monotonic()
    now = now or utcnow()
    ctx = RunContext.boot(run_id, dry_run=runtime.settings.dry_run)
    log = logger.bind(run_id=ctx.run_id)

    due = runtime.schedules.find_due(now, include_legacy=True)
    ctx.metrics.num_due = len(due)
    stage = ctx.stage("dispatch", items_in=len(due))
    log.info("Scheduler tick", due=len(due), dry_run=ctx.dry_run)

    if ctx.dry_run:
        for entry in due:
            ctx.record(EntryOutcome.skipped(entry, "dry run"))
        stage.finish()
        ctx.complete_run()
        return ctx

    semaphore = asyncio.Semaphore(runtime.settings.worker_pool_size)

    async def worker(entry: SearchScheduleEntry) -> EntryOutcome:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                ctx.cancelled = True
                return EntryOutcome.skipped(entry, "cancelled")
            return await _run_entry(runtime, entry, ctx, now)

    try:
        outcomes = await asyncio.gather(*(worker(entry) for entry in due))
    except Exception as e:
        stage.finish(errors=[str(e)], status="failed")
        ctx.complete_run(RunStatus.FAILED)
        raise

    for outcome in outcomes:
        ctx.record(outcome)
    stage.finish(items_out=ctx.metrics.num_succeeded, errors=ctx.errors())
    ctx.complete_run()

    log.info(
        "Scheduler tick done",
        status=ctx.status.value,
        succeeded=ctx.metrics.num_succeeded,
        failed=ctx.metrics.num_failed,
        skipped=ctx.metrics.num_skipped,
        jobs_appended=ctx.metrics.num_jobs_appended,
        duration=round(time.monotonic() - run_start, 2),
    )
    return ctx


def run_due_schedules(
    runtime: Runtime,
    now: datetime | None = None,
    run_id: str | None = None,
) -> RunContext:
    """Synchronous wrapper for run_due_schedules_async."""
    return asyncio.run(run_due_schedules_async(runtime, now=now, run_id=run_id))


def reconcile_schedules(runtime: Runtime, dry_run: bool | None = None) -> ReconcileReport:
    """Purge legacy schedule entries (or only report them when ``dry_run``)."""
    if dry_run is None:
        dry_run = runtime.settings.dry_run
    return runtime.reconciler.reconcile(runtime.schedules, dry_run=dry_run)


def search_recruiters(
    runtime: Runtime,
    query: str | None = None,
    page: int = 1,
    page_size: int = 20,
    user_id: str | None = None,
    company: str | None = None,
    industry: str | None = None,
    location: str | None = None,
    title: str | None = None,
) -> RecruiterPage:
    """Search the recruiter directory on behalf of a user."""
    return runtime.recruiters.search(
        query=query,
        page=page,
        page_size=page_size,
        user_id=user_id,
        company=company,
        industry=industry,
        location=location,
        title=title,
    )


class Scheduler:
    """Fixed-interval trigger for scheduler ticks."""

    def __init__(
        self,
        runtime: Runtime,
        interval_seconds: float | None = None,
        reconcile_on_start: bool = True,
    ) -> None:
        self.runtime = runtime
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else runtime.settings.tick_interval_seconds
        )
        self.reconcile_on_start = reconcile_on_start
        self.runs: list[RunContext] = []

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Tick until ``stop_event`` is set.

        Legacy entries are reconciled once before the first tick. A tick that
        raises is logged and the loop waits for the next one.
        """
        stop = stop_event or asyncio.Event()
        if self.reconcile_on_start:
            reconcile_schedules(self.runtime)

        while not stop.is_set():
            try:
                ctx = await run_due_schedules_async(self.runtime, cancel_event=stop)
                self.runs.append(ctx)
            except Exception:
                logger.exception("Scheduler tick failed")

            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
