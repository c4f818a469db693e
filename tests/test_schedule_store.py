from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from conftest import make_job

from core.errors import InvalidScheduleState, NotFound
from schemas.schedule import Cadence, ScheduleStatus, SearchCriteria, SearchScheduleCreate
from scheduling import SearchScheduleStore, next_weekly_run, week_start
from scheduling.cadence import is_due
from storage import MemoryDocumentStore

# A Monday
NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


# --- cadence ---


def test_next_weekly_run_later_today():
    assert next_weekly_run(NOW, 0, "09:00") == datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def test_next_weekly_run_past_preferred_time_moves_a_week():
    later = NOW.replace(hour=10)
    assert next_weekly_run(later, 0, "09:00") == datetime(2026, 10, 26, 9, 0, tzinfo=timezone.utc)


def test_next_weekly_run_is_strictly_after_now():
    exact = NOW.replace(hour=9)
    assert next_weekly_run(exact, 0, "09:00") == exact + timedelta(days=7)


def test_next_weekly_run_other_day():
    assert next_weekly_run(NOW, 4, "17:30") == datetime(2026, 10, 23, 17, 30, tzinfo=timezone.utc)
    wednesday = NOW + timedelta(days=2)
    assert next_weekly_run(wednesday, 0, "09:00") == datetime(2026, 10, 26, 9, 0, tzinfo=timezone.utc)


def test_naive_times_are_utc():
    assert next_weekly_run(NOW.replace(tzinfo=None), 0, "09:00").tzinfo == timezone.utc


def test_bad_preferred_time():
    with pytest.raises(ValueError):
        next_weekly_run(NOW, 0, "25:00")


@pytest.mark.parametrize("value", ["25:99", "24:00", "09:60"])
def test_out_of_range_preferred_time_fails_validation(value):
    with pytest.raises(ValidationError):
        Cadence(preferred_time=value)
    with pytest.raises(ValidationError):
        SearchScheduleCreate(user_id="u1", schedule={"preferred_time": value})


def test_week_start():
    assert week_start(NOW + timedelta(days=2, hours=7)) == datetime(2026, 10, 19, tzinfo=timezone.utc)


def test_is_due():
    assert is_due(NOW, None, None)
    assert is_due(NOW, NOW - timedelta(minutes=1), None)
    assert not is_due(NOW, NOW + timedelta(minutes=1), None)
    assert not is_due(NOW, NOW - timedelta(days=1), NOW + timedelta(hours=1))


# --- store ---


@pytest.fixture
def store():
    return SearchScheduleStore(MemoryDocumentStore(), clock=lambda: NOW)


def make_due(store, entry_id, when=None):
    when = when or NOW - timedelta(hours=1)
    store.documents.update_one(entry_id, {"schedule.next_scheduled_run": when.isoformat()})


def test_create_defaults(store):
    entry = store.create(
        SearchScheduleCreate(
            user_id="u1", resume_name="cv.pdf", search_criteria=SearchCriteria(job_title="SRE")
        )
    )

    assert entry.agent_name == "job-discovery-v1"
    assert entry.weekly_limit == 50
    assert entry.status is ScheduleStatus.RUNNING
    assert entry.schedule.frequency == "weekly"
    assert entry.schedule.next_scheduled_run == datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
    assert entry.current_week_start == week_start(NOW)
    assert store.get(entry.id) == entry


def test_create_with_explicit_cadence(store):
    entry = store.create(
        SearchScheduleCreate(user_id="u1", schedule=Cadence(day_of_week=2, preferred_time="07:15"))
    )
    assert entry.schedule.next_scheduled_run == datetime(2026, 10, 21, 7, 15, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "request_fields",
    [
        {"search_type": "adzuna_api"},
        {"quality_level": "adzuna-enhanced"},
        {"schedule": Cadence(frequency="daily")},
    ],
)
def test_create_rejects_legacy_configuration(store, request_fields):
    with pytest.raises(InvalidScheduleState):
        store.create(SearchScheduleCreate(user_id="u1", **request_fields))
    assert store.documents.count() == 0


def test_get_and_delete(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))

    with pytest.raises(NotFound):
        store.delete(entry.id, user_id="someone-else")
    store.delete(entry.id, user_id="u1")

    with pytest.raises(NotFound):
        store.get(entry.id)
    with pytest.raises(NotFound):
        store.delete(entry.id)


def test_list_for_user(store):
    store.create(SearchScheduleCreate(user_id="u1"))
    store.create(SearchScheduleCreate(user_id="u1"))
    store.create(SearchScheduleCreate(user_id="u2"))

    assert len(store.list_for_user("u1")) == 2


def test_find_due(store):
    due = store.create(SearchScheduleCreate(user_id="u1"))
    later = store.create(SearchScheduleCreate(user_id="u1"))
    paused = store.create(SearchScheduleCreate(user_id="u1"))
    snoozed = store.create(SearchScheduleCreate(user_id="u1"))
    unscheduled = store.create(SearchScheduleCreate(user_id="u1"))
    for entry in (due, paused, snoozed, unscheduled):
        make_due(store, entry.id)
    store.pause(paused.id)
    store.pause(snoozed.id, until=NOW + timedelta(days=1))
    store.documents.update_one(unscheduled.id, {"schedule.is_scheduled": False})

    assert [e.id for e in store.find_due(NOW)] == [due.id]
    assert later.schedule.next_scheduled_run > NOW


def test_find_due_leaves_out_legacy_unless_asked(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))
    make_due(store, entry.id)
    store.documents.update_one(entry.id, {"schedule.frequency": "daily"})

    assert store.find_due(NOW) == []
    assert [e.id for e in store.find_due(NOW, include_legacy=True)] == [entry.id]


def test_record_success_dedupes_history(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))
    jobs = [make_job(1), make_job(2)]

    assert store.record_success(entry.id, jobs) == 2
    assert store.record_success(entry.id, jobs + [make_job(3)]) == 1

    saved = store.get(entry.id)
    assert [j.title for j in saved.jobs_found] == ["Engineer 1", "Engineer 2", "Engineer 3"]
    assert saved.total_jobs_found == 3
    assert saved.jobs_found_this_week == 3
    assert saved.last_search_date == NOW
    assert saved.schedule.next_scheduled_run == next_weekly_run(NOW)


def test_record_success_enforces_weekly_limit(store):
    entry = store.create(SearchScheduleCreate(user_id="u1", weekly_limit=3))

    assert store.record_success(entry.id, [make_job(i) for i in range(5)]) == 3
    assert store.record_success(entry.id, [make_job(i) for i in range(5, 8)]) == 0
    assert store.remaining_budget(store.get(entry.id)) == 0


def test_weekly_counter_resets_next_week(store):
    entry = store.create(SearchScheduleCreate(user_id="u1", weekly_limit=2))
    store.record_success(entry.id, [make_job(1), make_job(2)])

    next_week = NOW + timedelta(days=7)
    assert store.remaining_budget(store.get(entry.id), next_week) == 2
    assert store.record_success(entry.id, [make_job(3)], ran_at=next_week) == 1

    saved = store.get(entry.id)
    assert saved.jobs_found_this_week == 1
    assert saved.current_week_start == week_start(next_week)
    assert saved.total_jobs_found == 3


def test_record_failure_keeps_next_run(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))

    store.record_failure(entry.id, "provider down")
    store.record_failure(entry.id, "provider still down")

    saved = store.get(entry.id)
    assert saved.error_count == 2
    assert saved.last_error == "provider still down"
    assert saved.schedule.next_scheduled_run == entry.schedule.next_scheduled_run


def test_pause_and_resume(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))

    assert store.pause(entry.id).status is ScheduleStatus.PAUSED
    resumed = store.resume(entry.id)

    assert resumed.status is ScheduleStatus.RUNNING
    assert resumed.schedule.pause_until is None
    assert resumed.schedule.next_scheduled_run == next_weekly_run(NOW)


def test_resume_refuses_legacy_entry(store):
    entry = store.create(SearchScheduleCreate(user_id="u1"))
    store.pause(entry.id)
    store.documents.update_one(entry.id, {"search_approach": "adzuna-daily"})

    with pytest.raises(InvalidScheduleState):
        store.resume(entry.id)


def test_active_ids_for_agent(store):
    running = store.create(SearchScheduleCreate(user_id="u1", agent_name="disc"))
    paused = store.create(SearchScheduleCreate(user_id="u1", agent_name="disc"))
    store.pause(paused.id)
    done = store.create(SearchScheduleCreate(user_id="u1", agent_name="disc"))
    store.documents.update_one(done.id, {"status": "completed"})
    store.create(SearchScheduleCreate(user_id="u1", agent_name="other"))

    assert sorted(store.active_ids_for_agent("disc")) == sorted([running.id, paused.id])


def test_weekly_progress(store):
    entry = store.create(SearchScheduleCreate(user_id="u1", weekly_limit=4))
    store.record_success(entry.id, [make_job(1)])

    progress = store.weekly_progress(store.get(entry.id))

    assert progress.week_start == week_start(NOW)
    assert progress.jobs_found == 1
    assert progress.remaining == 3
    assert progress.percentage == 25
    assert not progress.is_complete

    store.record_success(entry.id, [make_job(i) for i in range(2, 6)])
    assert store.weekly_progress(store.get(entry.id)).is_complete

    next_week = store.weekly_progress(store.get(entry.id), NOW + timedelta(days=7))
    assert next_week.jobs_found == 0
    assert next_week.remaining == 4


def test_statistics(store):
    first = store.create(SearchScheduleCreate(user_id="u1"))
    second = store.create(SearchScheduleCreate(user_id="u1"))
    legacy = store.create(SearchScheduleCreate(user_id="u1"))
    store.create(SearchScheduleCreate(user_id="u2"))
    store.record_success(first.id, [make_job(1), make_job(2), make_job(3)])
    store.record_success(second.id, [make_job(4)])
    store.pause(second.id)
    store.documents.update_one(legacy.id, {"search_approach": "adzuna-daily"})

    stats = store.statistics("u1")

    assert stats.total_searches == 3
    assert stats.active_searches == 2
    assert stats.legacy_searches == 1
    assert stats.by_status == {"running": 2, "paused": 1}
    assert stats.total_jobs_found == 4
    assert stats.avg_jobs_per_search == 1.33
    assert stats.avg_jobs_per_week == 1.33


def test_statistics_for_user_without_entries(store):
    stats = store.statistics("nobody")

    assert stats.total_searches == 0
    assert stats.avg_jobs_per_search == 0.0
