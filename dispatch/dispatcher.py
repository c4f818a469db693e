"""Agent dispatch: pick the behavior for an agent type, run it, keep score."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agents import BaseAgent, build_behaviors
from agents.base import AgentContext
from core.config import Settings
from core.errors import (
    AgentInactive,
    AgentInputError,
    AgentInvocationFailed,
    AgentTransportError,
    FailureKind,
    UnsupportedAgentType,
)
from dispatch.registry import AgentRegistry
from schemas.agent import AgentRecord, AgentType
from schemas.base import utcnow

logger = structlog.get_logger()

# Failures the dispatcher retries before giving up
TRANSIENT_ERRORS = (asyncio.TimeoutError, AgentTransportError)


class AgentResult(BaseModel):
    """Typed output of one successful invocation plus its bookkeeping."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    agent_name: str
    agent_type: AgentType
    output: Any
    started_at: datetime
    elapsed_ms: float
    attempts: int = 1


def _failure_kind(error: BaseException) -> FailureKind:
    if isinstance(error, AgentInputError):
        return FailureKind.REJECTED_INPUT
    if isinstance(error, asyncio.TimeoutError):
        return FailureKind.TIMEOUT
    if isinstance(error, AgentTransportError):
        return FailureKind.TRANSPORT
    return FailureKind.INTERNAL


class AgentDispatcher:
    """Invokes agents by type with timeout, bounded retries and performance tracking."""

    def __init__(
        self,
        registry: AgentRegistry,
        behaviors: Mapping[AgentType, BaseAgent] | None = None,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        backoff_multiplier: float = 1.0,
        backoff_min_seconds: float = 1.0,
        backoff_max_seconds: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.registry = registry
        self.behaviors: Mapping[AgentType, BaseAgent] = (
            behaviors if behaviors is not None else build_behaviors()
        )
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_min_seconds = backoff_min_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        registry: AgentRegistry,
        settings: Settings,
        behaviors: Mapping[AgentType, BaseAgent] | None = None,
    ) -> AgentDispatcher:
        return cls(
            registry,
            behaviors=behaviors,
            timeout_seconds=settings.agent_timeout_seconds,
            max_attempts=settings.agent_max_attempts,
            backoff_multiplier=settings.retry_backoff_multiplier,
            backoff_min_seconds=settings.retry_backoff_min_seconds,
            backoff_max_seconds=settings.retry_backoff_max_seconds,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_multiplier,
                min=self.backoff_min_seconds,
                max=self.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )

    def _behavior_for(self, record: AgentRecord) -> BaseAgent:
        behavior = self.behaviors.get(record.agent_type)
        if behavior is None:
            raise UnsupportedAgentType(record.agent_type, record.name)
        return behavior

    async def invoke(
        self,
        agent: AgentRecord | str,
        payload: BaseModel | Mapping[str, Any],
        context: AgentContext | Mapping[str, Any] | None = None,
    ) -> AgentResult:
        """Run one agent and record the outcome against its performance stats.

        Raises:
            NotFound: unknown agent name
            AgentInactive: the agent is switched off
            UnsupportedAgentType: no behavior for the agent's type
            AgentInvocationFailed: the agent failed after retries
        """
        name = agent if isinstance(agent, str) else agent.name
        if isinstance(agent, AgentRecord) and not agent.is_active:
            raise AgentInactive(name)
        record = self.registry.resolve(name, require_active=True)
        behavior = self._behavior_for(record)
        ctx = AgentContext.coerce(context)
        log = logger.bind(agent=record.name, agent_type=record.agent_type.value, run_id=ctx.run_id)

        started_at = self.clock()
        start = time.monotonic()
        attempts = 0
        try:
            parsed = behavior.parse_input(payload)
            async for attempt in self._retrying():
                with attempt:
                    attempts += 1
                    if attempts > 1:
                        log.info("Retrying agent", attempt=attempts)
                    output = await asyncio.wait_for(
                        behavior.run(record, parsed, ctx, self.timeout_seconds),
                        timeout=self.timeout_seconds,
                    )
        except Exception as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            kind = _failure_kind(e)
            self.registry.record_outcome(record.name, elapsed_ms, succeeded=False)
            log.warning(
                "Agent invocation failed",
                kind=kind.value,
                attempts=max(attempts, 1),
                error=str(e),
            )
            raise AgentInvocationFailed(record.name, e, kind, max(attempts, 1)) from e

        elapsed_ms = (time.monotonic() - start) * 1000
        self.registry.record_outcome(record.name, elapsed_ms, succeeded=True)
        self.registry.mark_run(record.name, started_at)
        log.info("Agent invocation succeeded", attempts=attempts, elapsed_ms=round(elapsed_ms, 1))

        return AgentResult(
            agent_name=record.name,
            agent_type=record.agent_type,
            output=output,
            started_at=started_at,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
        )
