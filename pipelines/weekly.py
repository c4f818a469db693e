"""Weekly maintenance pipeline: seed agents, reconcile legacy schedules, run due searches."""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from core.config import Settings, load_config, snapshot_config
from core.errors import ConfigValidationError
from core.log import configure_logging
from orchestration.runner import (
    Scheduler,
    reconcile_schedules,
    run_due_schedules_async,
)
from orchestration.runtime import Runtime

logger = structlog.get_logger()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sourcing-weekly",
        description="Reconcile schedule entries and dispatch due weekly searches.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report legacy entries and due searches without changing anything",
    )
    parser.add_argument(
        "--migrate",
        action="store_true",
        help="Rewrite legacy entries to the weekly configuration instead of deleting them",
    )
    parser.add_argument(
        "--skip-tick",
        action="store_true",
        help="Only seed and reconcile; do not dispatch due searches",
    )
    parser.add_argument(
        "--forever",
        action="store_true",
        help="Keep ticking at TICK_INTERVAL_SECONDS until interrupted",
    )
    parser.add_argument("--agents", type=Path, help="Path to agents.yaml")
    parser.add_argument("--scheduling", type=Path, help="Path to scheduling.yaml")
    return parser.parse_args(argv)


async def run_weekly_pipeline(runtime: Runtime, migrate: bool = False, skip_tick: bool = False) -> int:
    """Seed, reconcile and run one tick. Returns a process exit code."""
    runtime.seed_agents()

    if migrate and not runtime.settings.dry_run:
        runtime.reconciler.migrate(runtime.schedules)
    report = reconcile_schedules(runtime)
    for item in report.preview if report.dry_run else []:
        logger.info(
            "Legacy entry",
            schedule_id=item.id,
            user_id=item.user_id,
            resume_name=item.resume_name,
            reasons=item.reasons,
        )

    if skip_tick:
        return 0

    ctx = await run_due_schedules_async(runtime)
    logger.info("Run summary", **ctx.summary())
    return 1 if ctx.metrics.num_failed and not ctx.metrics.num_succeeded else 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the weekly pipeline."""
    args = _parse_args(argv)

    try:
        settings = Settings()
        if args.dry_run:
            settings.dry_run = True
        configure_logging(settings.log_level, json_output=settings.log_json)
        settings, scheduling, agents = load_config(settings, args.agents, args.scheduling)
    except ConfigValidationError as e:
        configure_logging()
        logger.error("Configuration error", error=str(e), errors=e.errors)
        sys.exit(2)

    logger.debug("Configuration loaded", **snapshot_config(settings, scheduling))
    runtime = Runtime.build(settings, scheduling, agents)

    if args.forever:
        runtime.seed_agents()
        try:
            asyncio.run(Scheduler(runtime).run_forever())
        except KeyboardInterrupt:
            logger.info("Scheduler stopped")
        return

    sys.exit(asyncio.run(run_weekly_pipeline(runtime, migrate=args.migrate, skip_tick=args.skip_tick)))


if __name__ == "__main__":
    main()
