import logging
from pathlib import Path

import pytest
import structlog

from core.config import Settings, load_agents_config, load_config, load_scheduling_config
from core.errors import ConfigValidationError
from core.log import _redact, configure_logging
from schemas.agent import AgentType

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config"


def test_shipped_config_is_valid():
    settings = Settings(_env_file=None)

    _, scheduling, agents = load_config(
        settings,
        agents_path=REPO_CONFIG / "agents.yaml",
        scheduling_path=REPO_CONFIG / "scheduling.yaml",
    )

    assert scheduling.reconcile.deprecated_tokens == ["adzuna"]
    assert scheduling.default_weekly_limit == 50
    types = {a.name: a.agent_type for a in agents.agents}
    assert types[settings.default_discovery_agent] is AgentType.JOB_DISCOVERY


def test_missing_files_fall_back_to_defaults(tmp_path):
    assert load_scheduling_config(tmp_path / "nope.yaml").default_preferred_time == "09:00"
    assert load_agents_config(tmp_path / "nope.yaml").agents == []


def test_empty_file_is_defaults(tmp_path):
    path = tmp_path / "scheduling.yaml"
    path.write_text("")

    assert load_scheduling_config(path).default_day_of_week == 0


def test_invalid_scheduling_values(tmp_path):
    path = tmp_path / "scheduling.yaml"
    path.write_text("default_day_of_week: 9\ndefault_preferred_time: '9am'\n")

    with pytest.raises(ConfigValidationError) as exc:
        load_scheduling_config(path)
    assert len(exc.value.errors) == 2


def test_out_of_range_default_preferred_time(tmp_path):
    path = tmp_path / "scheduling.yaml"
    path.write_text("default_preferred_time: '24:30'\n")

    with pytest.raises(ConfigValidationError) as exc:
        load_scheduling_config(path)
    assert len(exc.value.errors) == 1


def test_unknown_agent_type(tmp_path):
    path = tmp_path / "agents.yaml"
    path.write_text("agents:\n  - name: x\n    agent_type: Telepathy\n")

    with pytest.raises(ConfigValidationError):
        load_agents_config(path)


def test_duplicate_agent_names(tmp_path):
    path = tmp_path / "agents.yaml"
    path.write_text(
        "agents:\n"
        "  - name: twin\n    agent_type: JobMatching\n"
        "  - name: twin\n    agent_type: JobDiscovery\n"
    )

    with pytest.raises(ConfigValidationError, match="twin"):
        load_agents_config(path)


def test_unreadable_yaml(tmp_path):
    path = tmp_path / "agents.yaml"
    path.write_text("agents: [unclosed\n")

    with pytest.raises(ConfigValidationError):
        load_agents_config(path)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("WORKER_POOL_SIZE", "8")
    monkeypatch.setenv("STORE_DIR", "  ")
    monkeypatch.setenv("DRY_RUN", "true")

    settings = Settings(_env_file=None)

    assert settings.worker_pool_size == 8
    assert settings.store_dir is None
    assert settings.dry_run


def test_settings_reject_zero_workers():
    with pytest.raises(ValueError):
        Settings(_env_file=None, worker_pool_size=0)


def test_credentials_are_redacted_from_logs():
    event = _redact(None, "info", {"event": "x", "credential_ref": "ACTIVE_JOBS_API_KEY", "Api_Key": "k"})

    assert event["credential_ref"] == "***"
    assert event["Api_Key"] == "***"
    assert event["event"] == "x"


def test_events_reach_stdlib_handlers_redacted(caplog):
    configure_logging("INFO")
    try:
        with caplog.at_level(logging.INFO):
            structlog.get_logger("sourcing.registry").info(
                "Agent registered", credential_ref="ACTIVE_JOBS_API_KEY"
            )
    finally:
        structlog.reset_defaults()

    assert "Agent registered" in caplog.text
    assert "***" in caplog.text
    assert "ACTIVE_JOBS_API_KEY" not in caplog.text
    assert caplog.records[-1].name == "sourcing.registry"
