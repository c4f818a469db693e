"""Agent registry and dispatcher."""

from dispatch.dispatcher import AgentDispatcher, AgentResult
from dispatch.registry import AgentRegistry

__all__ = [
    "AgentDispatcher",
    "AgentRegistry",
    "AgentResult",
]
