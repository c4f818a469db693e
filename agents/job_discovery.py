"""Job discovery agent: search criteria -> ordered candidate jobs."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from agents.base import AgentContext, BaseAgent
from agents.http_client import HttpClient
from agents.job_matching import skill_overlap
from agents.llm import LlmClient
from core.errors import AgentInputError, AgentTransportError
from schemas.agent import AgentRecord, AgentType
from schemas.schedule import DiscoveredJob, SearchCriteria

logger = structlog.get_logger()


class DiscoveryInput(BaseModel):
    """Job discovery payload."""

    search_criteria: SearchCriteria
    limit: int = Field(default=50, ge=1, le=500)
    exclude_keys: list[str] = Field(
        default_factory=list, description="job_key values already in history"
    )


class DiscoveryResult(BaseModel):
    """Jobs found by one discovery run, best first."""

    jobs: list[DiscoveredJob] = Field(default_factory=list)
    returned_by_provider: int = 0


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, "", []):
            return value
    return None


def _location_text(value: Any) -> str | None:
    if isinstance(value, dict):
        parts = [value.get(k) for k in ("city", "state", "country")]
        joined = ", ".join(str(p) for p in parts if p)
        return joined or None
    if isinstance(value, list):
        return "; ".join(str(v) for v in value if v) or None
    return str(value) if value else None


class JobDiscoveryAgent(BaseAgent):
    """Query the configured job-board provider and normalize its postings."""

    agent_type = AgentType.JOB_DISCOVERY
    input_model = DiscoveryInput
    output_model = DiscoveryResult

    def __init__(
        self,
        llm: LlmClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limit: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(llm=llm, **kwargs)
        self.transport = transport
        self.rate_limit = rate_limit

    def _params(self, record: AgentRecord, criteria: SearchCriteria, limit: int) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit}
        if criteria.job_title:
            params["title"] = criteria.job_title
        if criteria.location:
            params["location"] = criteria.location
        if criteria.remote_work:
            params["remote"] = "true"
        if criteria.experience_level:
            params["experience_level"] = criteria.experience_level
        if criteria.job_types:
            params["job_types"] = ",".join(criteria.job_types)
        params.update(record.api.parameters)
        return params

    def _normalize(
        self, record: AgentRecord, raw: Any, criteria: SearchCriteria
    ) -> list[DiscoveredJob]:
        items = raw.get("jobs", raw.get("results", [])) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise AgentTransportError("Provider payload has no job list")

        api_source = str(record.config.get("api_source", "active_jobs_db"))
        jobs: list[DiscoveredJob] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            title = _first(item, "title", "job_title", "name")
            if not title:
                continue
            score = None
            if criteria.skills:
                description = str(_first(item, "description", "description_text") or "")
                required = _first(item, "required_skills", "skills") or []
                score, _, _ = skill_overlap(
                    criteria.skills, [str(s) for s in required], description
                )
            company = _first(item, "company", "organization", "company_name")
            if isinstance(company, dict):
                company = company.get("name")
            jobs.append(
                DiscoveredJob(
                    title=str(title),
                    company=str(company) if company else None,
                    location=_location_text(_first(item, "location", "locations_derived")),
                    source_url=_first(item, "url", "source_url", "redirect_url"),
                    match_score=round(score, 4) if score is not None else None,
                    api_source=api_source,
                )
            )
        return jobs

    async def run(
        self,
        record: AgentRecord,
        payload: Any,
        context: AgentContext,
        timeout: float | None = None,
    ) -> DiscoveryResult:
        if not record.api.endpoint:
            raise AgentInputError(f"Agent {record.name} has no provider endpoint configured")

        criteria: SearchCriteria = payload.search_criteria
        async with HttpClient(
            timeout=timeout or 30.0,
            rate_limit=self.rate_limit,
            transport=self.transport,
        ) as client:
            raw = await client.get_json(
                record.api.endpoint,
                params=self._params(record, criteria, payload.limit),
                credential=record.api.resolve_credential(),
            )

        found = self._normalize(record, raw, criteria)
        excluded = set(payload.exclude_keys)
        jobs: list[DiscoveredJob] = []
        seen: set[str] = set()
        for job in found:
            key = job.job_key
            if key in excluded or key in seen:
                continue
            seen.add(key)
            jobs.append(job)

        if criteria.skills:
            # Stable: provider order breaks ties
            jobs.sort(key=lambda j: j.match_score or 0.0, reverse=True)

        logger.info(
            "Discovery results",
            agent=record.name,
            schedule_id=context.schedule_id,
            returned=len(found),
            kept=min(len(jobs), payload.limit),
        )
        return DiscoveryResult(jobs=jobs[: payload.limit], returned_by_provider=len(found))
