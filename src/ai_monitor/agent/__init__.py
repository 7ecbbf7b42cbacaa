# Agent Module - Orchestration
#
# The agent ties detection, policy and response together and owns the
# background poll/status schedule plus the persisted status snapshot.

from .orchestrator import (
    AgentPhase,
    AgentState,
    AIMonitoringAgent,
    build_policy_context,
)
from .status import StatusStore

__all__ = [
    "AgentPhase",
    "AgentState",
    "AIMonitoringAgent",
    "build_policy_context",
    "StatusStore",
]
