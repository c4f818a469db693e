from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import AgentInactive, AgentInUse, DuplicateName, NotFound
from schemas.agent import AgentRecordBase, AgentRecordUpdate, AgentType, ApiBinding


def test_register_and_resolve(registry, make_agent):
    make_agent("resume-v1", AgentType.RESUME_ANALYSIS, description="resume parser")

    record = registry.resolve("resume-v1")

    assert record.agent_type is AgentType.RESUME_ANALYSIS
    assert record.description == "resume parser"
    assert record.performance.total_runs == 0
    assert record.last_run_at is None


def test_duplicate_name_rejected(make_agent):
    make_agent("resume-v1", AgentType.RESUME_ANALYSIS)

    with pytest.raises(DuplicateName):
        make_agent("resume-v1", AgentType.JOB_MATCHING)


def test_resolve_unknown_agent(registry):
    with pytest.raises(NotFound):
        registry.resolve("nope")


def test_resolve_inactive_agent(registry, make_agent):
    make_agent("old", is_active=False)

    with pytest.raises(AgentInactive):
        registry.resolve("old")
    assert registry.resolve("old", require_active=False).name == "old"


def test_record_outcome_cumulative_average(registry, make_agent):
    make_agent("a")

    registry.record_outcome("a", 100.0, succeeded=True)
    registry.record_outcome("a", 300.0, succeeded=True)
    record = registry.record_outcome("a", 200.0, succeeded=False)

    perf = record.performance
    assert perf.total_runs == 3
    assert perf.success_count == 2
    assert perf.error_count == 1
    assert perf.success_rate == pytest.approx(2 / 3)
    assert perf.error_rate == pytest.approx(1 / 3)
    assert perf.average_response_time_ms == pytest.approx(200.0)
    # persisted, not just returned
    assert registry.resolve("a").performance == perf


def test_concurrent_outcomes_are_not_lost(registry, make_agent):
    make_agent("busy")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: registry.record_outcome("busy", 10.0, i % 2 == 0), range(200)))

    perf = registry.resolve("busy").performance
    assert perf.total_runs == 200
    assert perf.success_count == 100
    assert perf.error_count == 100
    assert perf.success_rate + perf.error_rate == pytest.approx(1.0)


def test_seed_is_idempotent(registry):
    seeds = [
        AgentRecordBase(name="a", agent_type=AgentType.JOB_MATCHING),
        AgentRecordBase(name="b", agent_type=AgentType.CONTENT_GENERATION),
    ]

    assert registry.seed(seeds) == ["a", "b"]
    assert registry.seed(seeds) == []
    assert [r.name for r in registry.list_agents()] == ["a", "b"]


def test_list_active_only(registry, make_agent):
    make_agent("on")
    make_agent("off", is_active=False)

    assert [r.name for r in registry.list_agents(active_only=True)] == ["on"]


def test_reconfigure_and_set_active(registry, make_agent):
    make_agent("a", config={"x": 1})

    record = registry.reconfigure("a", AgentRecordUpdate(config={"x": 2}, version="1.1.0"))
    assert record.config == {"x": 2}
    assert record.version == "1.1.0"
    assert record.updated_at is not None

    registry.set_active("a", False)
    with pytest.raises(AgentInactive):
        registry.resolve("a")


def test_remove_refuses_agent_in_use(registry, make_agent):
    make_agent("a")

    with pytest.raises(AgentInUse) as exc:
        registry.remove("a", ["sched-1"])
    assert exc.value.schedule_ids == ["sched-1"]

    registry.remove("a", [])
    with pytest.raises(NotFound):
        registry.resolve("a")


def test_credential_ref_not_exposed(make_agent, monkeypatch):
    monkeypatch.setenv("TEST_PROVIDER_KEY", "sk-secret")
    record = make_agent("a", api=ApiBinding(credential_ref="TEST_PROVIDER_KEY"))

    assert "TEST_PROVIDER_KEY" not in repr(record)
    assert "credential_ref" not in record.public_view()["api"]
    secret = record.api.resolve_credential()
    assert secret.get_secret_value() == "sk-secret"
    assert "sk-secret" not in repr(secret)
