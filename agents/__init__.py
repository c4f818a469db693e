"""Agent behavior registry: one strategy class per agent type."""

from __future__ import annotations

from typing import Any

from agents.base import AgentContext, BaseAgent
from agents.content_generation import ContentGenerationAgent, ContentInput, GeneratedContent
from agents.job_discovery import DiscoveryInput, DiscoveryResult, JobDiscoveryAgent
from agents.job_matching import JobMatchingAgent, MatchAssessment, MatchInput
from agents.llm import LlmClient
from agents.resume_analysis import ResumeAnalysisAgent, ResumeFindings, ResumeInput
from schemas.agent import AgentType

AGENT_REGISTRY: dict[AgentType, type[BaseAgent]] = {
    AgentType.RESUME_ANALYSIS: ResumeAnalysisAgent,
    AgentType.JOB_MATCHING: JobMatchingAgent,
    AgentType.CONTENT_GENERATION: ContentGenerationAgent,
    AgentType.JOB_DISCOVERY: JobDiscoveryAgent,
}


def build_behaviors(**deps: Any) -> dict[AgentType, BaseAgent]:
    """Instantiate every registered behavior with shared dependencies."""
    return {agent_type: cls(**deps) for agent_type, cls in AGENT_REGISTRY.items()}


__all__ = [
    "AGENT_REGISTRY",
    "AgentContext",
    "BaseAgent",
    "ContentGenerationAgent",
    "ContentInput",
    "DiscoveryInput",
    "DiscoveryResult",
    "GeneratedContent",
    "JobDiscoveryAgent",
    "JobMatchingAgent",
    "LlmClient",
    "MatchAssessment",
    "MatchInput",
    "ResumeAnalysisAgent",
    "ResumeFindings",
    "ResumeInput",
    "build_behaviors",
]
