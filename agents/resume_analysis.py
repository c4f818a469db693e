"""Resume analysis agent: resume text -> structured findings."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from agents.base import AgentContext, BaseAgent
from agents.llm import build_messages
from schemas.agent import AgentRecord, AgentType

_SYSTEM_PROMPT = """\
You are an expert technical recruiter reviewing a candidate resume.
Extract the candidate's skills, the job titles they are qualified for,
their experience level, their strongest selling points and the gaps a
hiring manager would notice. Only state what the resume supports.
"""

_USER_PROMPT = """\
Analyze this resume.

Target role: {target_role}

--- RESUME ---
{text}
"""


class ResumeInput(BaseModel):
    """Resume analysis payload."""

    text: str = Field(..., min_length=1, description="Plain-text resume")
    target_role: str | None = None


class ResumeFindings(BaseModel):
    """Structured findings for one resume."""

    summary: str = ""
    skills: list[str] = Field(default_factory=list)
    job_titles: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    years_experience: float | None = Field(None, ge=0)
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)


class ResumeAnalysisAgent(BaseAgent):
    """Ask the LLM for a :class:`ResumeFindings` extraction."""

    agent_type = AgentType.RESUME_ANALYSIS
    input_model = ResumeInput
    output_model = ResumeFindings

    async def run(
        self,
        record: AgentRecord,
        payload: Any,
        context: AgentContext,  # noqa: ARG002
        timeout: float | None = None,
    ) -> ResumeFindings:
        max_chars = int(record.config.get("max_resume_chars", 12000))
        text = payload.text[:max_chars]
        messages = build_messages(
            record.config.get("system_prompt", _SYSTEM_PROMPT),
            _USER_PROMPT.format(target_role=payload.target_role or "any", text=text),
            ResumeFindings,
        )
        findings = await self.llm.complete_model(messages, ResumeFindings, record.api, timeout)
        # Normalize skill spelling so downstream matching compares like with like
        findings.skills = sorted({s.strip() for s in findings.skills if s.strip()}, key=str.lower)
        return findings
