# AI Monitor - Main Package
#
# Endpoint agent that watches for interactive AI tools, runs every
# detection through a policy decision and enforces allow / block /
# prompt. Anything ambiguous or broken resolves to block.

__version__ = "0.3.0"
__author__ = "AI Monitor Team"
__description__ = "Endpoint agent for detecting and governing AI tool usage"

from .core import (
    AgentConfig,
    EventSeverity,
    EventType,
    get_audit_logger,
    load_config,
)
from .models import Decision, DetectionSource

__all__ = [
    "__version__",
    "AgentConfig",
    "Decision",
    "DetectionSource",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "load_config",
]
