"""Core infrastructure: config, run context, errors, logging, and utilities."""

from core.config import Settings, load_config
from core.context import RunContext, RunStatus
from core.ids import content_hash, generate_run_id, normalize_url
from core.log import configure_logging

__all__ = [
    "Settings",
    "load_config",
    "RunContext",
    "RunStatus",
    "generate_run_id",
    "content_hash",
    "normalize_url",
    "configure_logging",
]
