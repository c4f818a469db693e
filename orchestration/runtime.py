"""Wiring of stores, registry, dispatcher and match engine from settings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
from sqlalchemy import Engine, create_engine

from agents import BaseAgent, LlmClient, build_behaviors
from core.config import Settings, load_config
from dispatch import AgentDispatcher, AgentRegistry
from matching import RecruiterMatchEngine
from schemas.agent import AgentRecordBase, AgentType, ApiBinding
from schemas.config import AgentsConfig, SchedulingConfig
from scheduling import ScheduleReconciler, SearchScheduleStore
from storage import DocumentStore, FileDocumentStore, MemoryDocumentStore

logger = structlog.get_logger()

AGENTS_COLLECTION = "agents"
SCHEDULES_COLLECTION = "search_schedules"


def _document_store(settings: Settings, collection: str) -> DocumentStore:
    if settings.store_dir:
        return FileDocumentStore(Path(settings.store_dir), collection)
    return MemoryDocumentStore()


def _recruiter_engine(settings: Settings) -> Engine:
    url = settings.recruiter_database_url
    if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url)


def agent_seeds(config: AgentsConfig) -> list[AgentRecordBase]:
    """Turn agents.yaml entries into registrable records."""
    return [
        AgentRecordBase(
            name=entry.name,
            agent_type=entry.agent_type,
            description=entry.description,
            version=entry.version,
            is_active=entry.is_active,
            config=entry.config,
            api=ApiBinding(**entry.api.model_dump()),
        )
        for entry in config.agents
    ]


@dataclass
class Runtime:
    """Everything a scheduler tick or a caller-facing operation needs."""

    settings: Settings
    scheduling: SchedulingConfig
    agents_config: AgentsConfig
    registry: AgentRegistry
    dispatcher: AgentDispatcher
    reconciler: ScheduleReconciler
    schedules: SearchScheduleStore
    recruiters: RecruiterMatchEngine

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        scheduling: SchedulingConfig | None = None,
        agents_config: AgentsConfig | None = None,
        behaviors: Mapping[AgentType, BaseAgent] | None = None,
        recruiter_engine: Engine | None = None,
        agent_store: DocumentStore | None = None,
        schedule_store: DocumentStore | None = None,
    ) -> Runtime:
        """Build a runtime, loading any configuration not passed in."""
        if scheduling is None or agents_config is None:
            settings, loaded_scheduling, loaded_agents = load_config(settings)
            scheduling = scheduling or loaded_scheduling
            agents_config = agents_config or loaded_agents
        settings = settings or Settings()

        registry = AgentRegistry(agent_store or _document_store(settings, AGENTS_COLLECTION))
        if behaviors is None:
            behaviors = build_behaviors(
                llm=LlmClient(default_model=settings.llm_model),
                rate_limit=settings.discovery_rate_limit,
            )
        dispatcher = AgentDispatcher.from_settings(registry, settings, behaviors=behaviors)

        reconciler = ScheduleReconciler(scheduling.reconcile, scheduling.canonical)
        schedules = SearchScheduleStore(
            schedule_store or _document_store(settings, SCHEDULES_COLLECTION),
            scheduling=scheduling,
            reconciler=reconciler,
            default_agent=settings.default_discovery_agent,
        )
        recruiters = RecruiterMatchEngine(
            recruiter_engine or _recruiter_engine(settings),
            max_page_size=settings.max_page_size,
            max_query_length=settings.max_query_length,
        )

        logger.debug(
            "Runtime built",
            store_dir=settings.store_dir,
            behaviors=sorted(t.value for t in behaviors),
        )
        return cls(
            settings=settings,
            scheduling=scheduling,
            agents_config=agents_config,
            registry=registry,
            dispatcher=dispatcher,
            reconciler=reconciler,
            schedules=schedules,
            recruiters=recruiters,
        )

    def seed_agents(self) -> list[str]:
        """Register agents from agents.yaml that are not present yet."""
        added = self.registry.seed(agent_seeds(self.agents_config))
        if added:
            logger.info("Agents seeded", added=added)
        return added

    def remove_agent(self, name: str) -> None:
        """Delete an agent unless an active schedule still uses it."""
        self.registry.remove(name, self.schedules.active_ids_for_agent(name))
