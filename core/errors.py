"""Error taxonomy shared by the registry, dispatcher, scheduler and matcher."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class SourcingError(Exception):
    """Base class for all errors raised by the sourcing core."""


class NotFound(SourcingError):
    """Unknown agent, schedule entry or recruiter id."""

    def __init__(self, kind: str, identity: Any):
        super().__init__(f"{kind} not found: {identity}")
        self.kind = kind
        self.identity = identity


class DuplicateName(SourcingError):
    """An agent with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Agent already registered: {name}")
        self.name = name


class AgentInactive(SourcingError):
    """The agent exists but is switched off."""

    def __init__(self, name: str):
        super().__init__(f"Agent is inactive: {name}")
        self.name = name


class AgentInUse(SourcingError):
    """The agent is still referenced by an active schedule entry."""

    def __init__(self, name: str, schedule_ids: list[str]):
        super().__init__(
            f"Agent {name} is referenced by {len(schedule_ids)} active schedule(s)"
        )
        self.name = name
        self.schedule_ids = schedule_ids


class UnsupportedAgentType(SourcingError):
    """No behavior is registered for the record's agent type."""

    def __init__(self, agent_type: Any, name: str | None = None):
        super().__init__(f"Unsupported agent type {agent_type!r} (agent={name})")
        self.agent_type = agent_type
        self.name = name


class FailureKind(StrEnum):
    """Why an agent invocation failed."""

    TIMEOUT = "timeout"
    REJECTED_INPUT = "rejected_input"
    TRANSPORT = "transport"
    INTERNAL = "internal"


class AgentInvocationFailed(SourcingError):
    """Raised by the dispatcher once retries are exhausted or not applicable."""

    def __init__(
        self,
        agent_name: str,
        cause: BaseException,
        kind: FailureKind,
        attempts: int = 1,
    ):
        super().__init__(
            f"Agent {agent_name} failed ({kind.value}, {attempts} attempt(s)): {cause}"
        )
        self.agent_name = agent_name
        self.cause = cause
        self.kind = kind
        self.attempts = attempts


class AgentInputError(SourcingError):
    """The agent rejected its input payload. Never retried."""


class AgentTransportError(SourcingError):
    """A downstream call failed in a way that is worth retrying."""


class InvalidScheduleState(SourcingError):
    """A legacy/deprecated schedule configuration was found outside reconciliation."""

    def __init__(self, schedule_id: str | None, reasons: list[str]):
        super().__init__(
            f"Schedule {schedule_id or '<new>'} uses deprecated configuration: "
            + "; ".join(reasons)
        )
        self.schedule_id = schedule_id
        self.reasons = reasons


class QueryValidationError(SourcingError):
    """Malformed query or pagination parameters."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ConfigValidationError(SourcingError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []
