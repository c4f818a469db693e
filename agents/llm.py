"""LLM client using litellm for provider abstraction."""

from __future__ import annotations

import json
import time
from typing import Any, TypeVar

import litellm  # type: ignore[import-untyped]
import structlog
from pydantic import BaseModel, ValidationError

from core.errors import AgentInputError, AgentTransportError, SourcingError
from schemas.agent import ApiBinding

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

_SCHEMA_SUFFIX = """\

Return ONLY valid JSON matching the schema below. No markdown, no explanation.

JSON Schema:
{schema}
"""

# Provider failures worth another attempt
_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    litellm.exceptions.Timeout,
    litellm.exceptions.APIConnectionError,
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.InternalServerError,
)


class MalformedOutput(SourcingError):
    """The model answered, but not with the JSON we asked for."""


def build_messages(
    system_prompt: str, user_prompt: str, output_model: type[BaseModel]
) -> list[dict[str, str]]:
    """Build chat messages asking for JSON shaped like ``output_model``."""
    schema_json = json.dumps(output_model.model_json_schema(), indent=2)
    return [
        {"role": "system", "content": system_prompt + _SCHEMA_SUFFIX.format(schema=schema_json)},
        {"role": "user", "content": user_prompt},
    ]


class LlmClient:
    """Thin async wrapper over ``litellm.acompletion`` returning JSON objects."""

    def __init__(self, default_model: str = "gpt-4o-mini", temperature: float = 0.1):
        self.default_model = default_model
        self.temperature = temperature

    async def complete_json(
        self,
        messages: list[dict[str, str]],
        binding: ApiBinding,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run one completion and decode its JSON body."""
        model = binding.model_name or self.default_model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
        }
        kwargs.update(binding.parameters)
        if binding.endpoint:
            kwargs["api_base"] = binding.endpoint
        credential = binding.resolve_credential()
        if credential is not None:
            kwargs["api_key"] = credential.get_secret_value()
        if timeout is not None:
            kwargs["timeout"] = timeout

        start = time.monotonic()
        try:
            response = await litellm.acompletion(**kwargs)
        except _TRANSIENT_ERRORS as e:
            raise AgentTransportError(f"LLM call failed: {e}") from e
        except litellm.exceptions.BadRequestError as e:
            raise AgentInputError(f"LLM rejected request: {e}") from e

        raw_text: str = response.choices[0].message.content or ""  # type: ignore[union-attr]
        usage = getattr(response, "usage", None)
        logger.debug(
            "LLM response",
            model=model,
            chars=len(raw_text),
            tokens=getattr(usage, "total_tokens", 0) if usage else 0,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
        )

        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise MalformedOutput(f"LLM returned non-JSON output: {e}") from e
        if not isinstance(data, dict):
            raise MalformedOutput("LLM returned JSON that is not an object")
        return data

    async def complete_model(
        self,
        messages: list[dict[str, str]],
        output_model: type[ModelT],
        binding: ApiBinding,
        timeout: float | None = None,
    ) -> ModelT:
        """Run one completion and validate it into ``output_model``."""
        data = await self.complete_json(messages, binding, timeout)
        try:
            return output_model.model_validate(data)
        except ValidationError as e:
            raise MalformedOutput(f"LLM output failed validation: {e}") from e
