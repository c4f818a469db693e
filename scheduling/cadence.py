"""Weekly cadence arithmetic. All times are UTC."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from schemas.schedule import parse_preferred_time


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def next_weekly_run(now: datetime, day_of_week: int = 0, preferred_time: str = "09:00") -> datetime:
    """Next occurrence of ``day_of_week`` (Monday=0) at ``preferred_time``, strictly after now."""
    now = _as_utc(now)
    hour, minute = parse_preferred_time(preferred_time)
    days_until = (day_of_week - now.weekday()) % 7
    candidate = (now + timedelta(days=days_until)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 of the week containing ``moment``."""
    moment = _as_utc(moment)
    monday = moment - timedelta(days=moment.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def is_due(now: datetime, next_run: datetime | None, pause_until: datetime | None) -> bool:
    """An entry with no next run yet is due immediately."""
    now = _as_utc(now)
    if pause_until is not None and _as_utc(pause_until) > now:
        return False
    return next_run is None or _as_utc(next_run) <= now
