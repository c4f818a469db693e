"""Shared fixtures: in-memory stores, fake LLM, stub agents and a wired runtime."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from agents import BaseAgent, DiscoveryInput, DiscoveryResult, LlmClient
from agents.base import AgentContext
from core.config import Settings
from dispatch import AgentDispatcher, AgentRegistry
from orchestration.runtime import Runtime
from schemas.agent import AgentRecord, AgentRecordBase, AgentType, ApiBinding
from schemas.config import AgentsConfig, SchedulingConfig
from schemas.schedule import DiscoveredJob
from storage import MemoryDocumentStore


class FakeLlm(LlmClient):
    """LlmClient that answers from a queue instead of calling a provider."""

    def __init__(self, *responses: dict[str, Any] | Exception):
        super().__init__(default_model="fake-model")
        self.responses = list(responses)
        self.calls: list[list[dict[str, str]]] = []

    async def complete_json(self, messages, binding, timeout=None):
        self.calls.append(messages)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class StubDiscovery(BaseAgent):
    """Discovery behavior whose results and failures are scripted per agent name."""

    agent_type = AgentType.JOB_DISCOVERY
    input_model = DiscoveryInput
    output_model = DiscoveryResult

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(llm=FakeLlm(), **kwargs)
        self.jobs: dict[str, list[DiscoveredJob]] = {}
        self.failures: dict[str, list[Exception]] = {}
        self.delay: float = 0.0
        self.calls: list[tuple[str, DiscoveryInput, AgentContext]] = []
        self.active = 0
        self.max_active = 0

    async def run(self, record, payload, context, timeout=None):
        self.calls.append((record.name, payload, context))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        pending = self.failures.get(record.name)
        if pending:
            raise pending.pop(0)
        jobs = [j for j in self.jobs.get(record.name, []) if j.job_key not in payload.exclude_keys]
        return DiscoveryResult(jobs=jobs[: payload.limit], returned_by_provider=len(jobs))


def make_job(n: int, source: str = "active_jobs_db") -> DiscoveredJob:
    return DiscoveredJob(
        title=f"Engineer {n}",
        company=f"Company {n}",
        source_url=f"https://jobs.example.com/{n}",
        api_source=source,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        store_dir="",
        recruiter_database_url="sqlite://",
        agent_timeout_seconds=1.0,
        agent_max_attempts=3,
        retry_backoff_multiplier=0,
        retry_backoff_min_seconds=0,
        retry_backoff_max_seconds=0,
        worker_pool_size=2,
    )


@pytest.fixture
def registry() -> AgentRegistry:
    return AgentRegistry(MemoryDocumentStore())


@pytest.fixture
def make_agent(registry: AgentRegistry) -> Callable[..., AgentRecord]:
    def _make(
        name: str = "discovery-a",
        agent_type: AgentType = AgentType.JOB_DISCOVERY,
        **fields: Any,
    ) -> AgentRecord:
        return registry.register(AgentRecordBase(name=name, agent_type=agent_type, **fields))

    return _make


@pytest.fixture
def discovery() -> StubDiscovery:
    return StubDiscovery()


@pytest.fixture
def dispatcher(registry: AgentRegistry, settings: Settings, discovery: StubDiscovery) -> AgentDispatcher:
    return AgentDispatcher.from_settings(
        registry, settings, behaviors={AgentType.JOB_DISCOVERY: discovery}
    )


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def runtime(settings: Settings, discovery: StubDiscovery, sqlite_engine) -> Runtime:
    rt = Runtime.build(
        settings,
        SchedulingConfig(),
        AgentsConfig(),
        behaviors={AgentType.JOB_DISCOVERY: discovery},
        recruiter_engine=sqlite_engine,
        agent_store=MemoryDocumentStore(),
        schedule_store=MemoryDocumentStore(),
    )
    rt.registry.register(
        AgentRecordBase(
            name=settings.default_discovery_agent,
            agent_type=AgentType.JOB_DISCOVERY,
            api=ApiBinding(endpoint="https://jobs.example.com/api"),
        )
    )
    return rt
