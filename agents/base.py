"""Base agent behavior and the payloads every agent shares."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError

from core.errors import AgentInputError
from schemas.agent import AgentRecord, AgentType

from agents.llm import LlmClient


class AgentContext(BaseModel):
    """Who and what an invocation is for."""

    run_id: str | None = None
    user_id: str | None = None
    schedule_id: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def coerce(cls, value: AgentContext | Mapping[str, Any] | None) -> AgentContext:
        if value is None:
            return cls()
        if isinstance(value, AgentContext):
            return value
        known = {k: v for k, v in value.items() if k in cls.model_fields and k != "extra"}
        extra = {k: v for k, v in value.items() if k not in cls.model_fields}
        extra.update(value.get("extra") or {})
        return cls(**known, extra=extra)


class BaseAgent(ABC):
    """One agent capability.

    Subclasses declare the ``agent_type`` they serve and the ``input_model``
    their payload must validate against, and implement :meth:`run`.
    """

    agent_type: ClassVar[AgentType]
    input_model: ClassVar[type[BaseModel]]
    output_model: ClassVar[type[BaseModel]]

    def __init__(self, llm: LlmClient | None = None, **_: Any) -> None:
        self.llm = llm or LlmClient()

    def parse_input(self, payload: BaseModel | Mapping[str, Any]) -> BaseModel:
        """Validate the payload, turning schema errors into rejected input."""
        if isinstance(payload, self.input_model):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        try:
            return self.input_model.model_validate(payload)
        except ValidationError as e:
            raise AgentInputError(
                f"{self.agent_type.value} input rejected: {e.error_count()} error(s)"
            ) from e

    @abstractmethod
    async def run(
        self,
        record: AgentRecord,
        payload: Any,
        context: AgentContext,
        timeout: float | None = None,
    ) -> BaseModel:
        """Execute the capability and return an ``output_model`` instance.

        ``timeout`` is the per-attempt budget, passed on to downstream calls
        that accept one.
        """
