"""
Pydantic schemas for the sourcing agent core.

Contract-first design: these schemas define the data contracts
between the registry, dispatcher, scheduler and matcher.
"""

# Initialize ``core`` first: core.config imports schemas.config, which needs
# schemas.schedule, which imports core.ids. Loading core up front breaks the cycle.
import core  # noqa: F401

from .agent import (
    AgentPerformance,
    AgentRecord,
    AgentRecordBase,
    AgentRecordUpdate,
    AgentType,
    ApiBinding,
)
from .schedule import (
    Cadence,
    DiscoveredJob,
    ScheduleStatus,
    SearchCriteria,
    SearchScheduleCreate,
    SearchScheduleEntry,
    ScheduleStatistics,
    WeeklyProgress,
)
from .recruiter import (
    OutreachRecord,
    OutreachStatus,
    RecruiterMatch,
    RecruiterPage,
)
from .config import AgentsConfig, ReconcileConfig, SchedulingConfig

__all__ = [
    # Agents
    "AgentPerformance",
    "AgentRecord",
    "AgentRecordBase",
    "AgentRecordUpdate",
    "AgentType",
    "ApiBinding",
    # Schedules
    "Cadence",
    "DiscoveredJob",
    "ScheduleStatus",
    "SearchCriteria",
    "SearchScheduleCreate",
    "SearchScheduleEntry",
    "ScheduleStatistics",
    "WeeklyProgress",
    # Recruiters
    "OutreachRecord",
    "OutreachStatus",
    "RecruiterMatch",
    "RecruiterPage",
    # Config schemas
    "AgentsConfig",
    "ReconcileConfig",
    "SchedulingConfig",
]
