"""Content generation agent: cover letters and recruiter outreach drafts."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from agents.base import AgentContext, BaseAgent
from agents.llm import build_messages
from schemas.agent import AgentRecord, AgentType

_SYSTEM_PROMPT = """\
You write concise, specific job-search content for a candidate.
Ground every claim in the resume text provided. Never invent employers,
titles, dates or metrics. Keep the requested tone.
"""

_USER_PROMPT = """\
Write a {content_type} in a {tone} tone.

Recipient: {recipient}
Role: {job_title}

--- JOB DESCRIPTION ---
{job_description}

--- RESUME ---
{resume_text}
"""


class ContentType(str, Enum):
    """Kinds of content the agent writes."""

    COVER_LETTER = "cover_letter"
    OUTREACH_EMAIL = "outreach_email"
    LINKEDIN_MESSAGE = "linkedin_message"
    RESUME_SUMMARY = "resume_summary"


class ContentInput(BaseModel):
    """Content generation payload."""

    content_type: ContentType
    resume_text: str = Field(..., min_length=1)
    job_title: str | None = None
    job_description: str = ""
    recipient_name: str | None = None
    tone: str = "professional"

    @model_validator(mode="after")
    def _outreach_needs_recipient(self) -> "ContentInput":
        if self.content_type is ContentType.OUTREACH_EMAIL and not self.recipient_name:
            raise ValueError("outreach_email requires recipient_name")
        return self


class GeneratedContent(BaseModel):
    """One piece of generated content."""

    content_type: ContentType
    subject: str | None = None
    body: str = Field(..., min_length=1)


class _Draft(BaseModel):
    subject: str | None = None
    body: str


class ContentGenerationAgent(BaseAgent):
    """Draft content via the LLM and enforce the configured length cap."""

    agent_type = AgentType.CONTENT_GENERATION
    input_model = ContentInput
    output_model = GeneratedContent

    async def run(
        self,
        record: AgentRecord,
        payload: Any,
        context: AgentContext,  # noqa: ARG002
        timeout: float | None = None,
    ) -> GeneratedContent:
        messages = build_messages(
            _SYSTEM_PROMPT,
            _USER_PROMPT.format(
                content_type=payload.content_type.value.replace("_", " "),
                tone=payload.tone,
                recipient=payload.recipient_name or "hiring team",
                job_title=payload.job_title or "unspecified",
                job_description=payload.job_description or "(not provided)",
                resume_text=payload.resume_text,
            ),
            _Draft,
        )
        draft = await self.llm.complete_model(messages, _Draft, record.api, timeout)

        max_chars = record.config.get("max_body_chars")
        body = draft.body.strip()
        if max_chars and len(body) > int(max_chars):
            body = body[: int(max_chars)].rstrip()

        return GeneratedContent(
            content_type=payload.content_type,
            subject=draft.subject,
            body=body,
        )
