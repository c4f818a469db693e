"""Job matching agent: resume skills vs. job requirements."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from agents.base import AgentContext, BaseAgent
from agents.llm import build_messages
from schemas.agent import AgentRecord, AgentType

_SYSTEM_PROMPT = """\
You are a recruiter explaining to a candidate how well they fit a job.
You are given the matched and missing skills. Write a two or three sentence
rationale. Do not invent skills that are not listed.
"""


class MatchInput(BaseModel):
    """Job matching payload."""

    resume_skills: list[str] = Field(..., min_length=1)
    job_description: str = ""
    job_title: str | None = None
    required_skills: list[str] = Field(default_factory=list)


class MatchAssessment(BaseModel):
    """How well a candidate fits one job."""

    score: float = Field(..., ge=0, le=1)
    matched_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)
    rationale: str = ""


class _Rationale(BaseModel):
    rationale: str


def _norm(skill: str) -> str:
    return re.sub(r"\s+", " ", skill.strip().lower())


def _mentions(text: str, skill: str) -> bool:
    """Whole-word, case-insensitive mention of ``skill`` in ``text``."""
    pattern = r"(?<![\w+#])" + re.escape(skill) + r"(?![\w+#])"
    return re.search(pattern, text, flags=re.IGNORECASE) is not None


def skill_overlap(
    resume_skills: list[str],
    required_skills: list[str],
    job_description: str = "",
) -> tuple[float, list[str], list[str]]:
    """Score resume skills against a job.

    Required skills come from the job when listed; otherwise they are the
    resume skills the description mentions, so the score degrades to
    "how much of what I know does this job ask for".

    Returns:
        Tuple of (score, matched, missing)
    """
    have = {_norm(s): s.strip() for s in resume_skills if s.strip()}
    if required_skills:
        wanted = {_norm(s): s.strip() for s in required_skills if s.strip()}
    else:
        wanted = {k: v for k, v in have.items() if _mentions(job_description, k)}
        if not wanted:
            return 0.0, [], []
        return len(wanted) / len(have), sorted(wanted.values(), key=str.lower), []

    if not wanted:
        return 0.0, [], []
    matched = [wanted[k] for k in wanted if k in have]
    missing = [wanted[k] for k in wanted if k not in have]
    score = len(matched) / len(wanted)
    return score, sorted(matched, key=str.lower), sorted(missing, key=str.lower)


class JobMatchingAgent(BaseAgent):
    """Deterministic skill overlap, with an optional LLM-written rationale."""

    agent_type = AgentType.JOB_MATCHING
    input_model = MatchInput
    output_model = MatchAssessment

    async def run(
        self,
        record: AgentRecord,
        payload: Any,
        context: AgentContext,  # noqa: ARG002
        timeout: float | None = None,
    ) -> MatchAssessment:
        score, matched, missing = skill_overlap(
            payload.resume_skills, payload.required_skills, payload.job_description
        )
        assessment = MatchAssessment(
            score=round(score, 4),
            matched_skills=matched,
            missing_skills=missing,
            rationale=(
                f"Matched {len(matched)} of {len(matched) + len(missing)} required skills."
                if matched or missing
                else "No overlapping skills found."
            ),
        )

        if record.config.get("explain_with_llm"):
            messages = build_messages(
                _SYSTEM_PROMPT,
                f"Job: {payload.job_title or 'unknown'}\n"
                f"Matched: {', '.join(matched) or 'none'}\n"
                f"Missing: {', '.join(missing) or 'none'}\n"
                f"Score: {assessment.score:.2f}",
                _Rationale,
            )
            explained = await self.llm.complete_model(messages, _Rationale, record.api, timeout)
            assessment.rationale = explained.rationale

        return assessment
