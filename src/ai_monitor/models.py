# AI Monitor - Data Models
#
# Structured records that flow through one detection pipeline run:
#   ObservedProcess -> Match -> DetectionEvent -> PolicyDecision -> ResponseResult
#
# Records produced by detection are immutable; AgentStatus is the only
# mutable-looking record and is rebuilt as a snapshot on every request.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Decision(str, Enum):
    """Enforcement verdict for one detection event."""

    ALLOW = "allow"
    BLOCK = "block"
    PROMPT = "prompt"

    @classmethod
    def from_string(cls, value: str) -> "Decision":
        """Parse a decision (case-insensitive). Raises ValueError if unknown."""
        return cls(value.strip().lower())


class DetectionSource(str, Enum):
    """Where a detection originated."""

    PROCESS = "process"
    TEST = "test"


EVENT_TYPE_AI_TOOL_DETECTED = "ai_tool_detected"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Signature:
    """Static descriptor used to recognize an AI tool.

    Hints and patterns are stored lowercase so matching only has to
    lowercase the observed side.
    """

    name: str
    process_name_hints: Tuple[str, ...]
    title_patterns: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(
            self, "process_name_hints",
            tuple(h.lower() for h in self.process_name_hints),
        )
        object.__setattr__(
            self, "title_patterns",
            tuple(p.lower() for p in self.title_patterns),
        )

    def matches_process_name(self, process_name: str) -> bool:
        name = (process_name or "").lower()
        return any(hint in name for hint in self.process_name_hints)

    def matches_window_title(self, window_title: str) -> bool:
        if not window_title:
            return False
        title = window_title.lower()
        return any(pattern in title for pattern in self.title_patterns)


@dataclass(frozen=True)
class ObservedProcess:
    """An interactive process seen during one poll cycle."""

    id: int
    name: str
    window_title: str = ""


@dataclass(frozen=True)
class Match:
    """Result of matching one process against the signature catalog."""

    signature: Signature
    confidence: float
    match_type: str
    match_details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectionEvent:
    """Immutable record of one observed AI-tool usage instance."""

    id: str
    timestamp: datetime
    event_type: str
    source: DetectionSource
    ai_tool: str
    confidence: float
    process_id: Optional[int]
    process_name: str
    username: str
    window_title: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "eventType": self.event_type,
            "source": self.source.value,
            "aiTool": self.ai_tool,
            "confidence": self.confidence,
            "processId": self.process_id,
            "processName": self.process_name,
            "username": self.username,
            "windowTitle": self.window_title,
            "metadata": self.metadata,
        }


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserContext:
    username: str
    groups: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DeviceContext:
    id: str
    name: str
    type: str


@dataclass(frozen=True)
class PolicyContext:
    """Who and where a detection happened. Built fresh for every event."""

    user: UserContext
    device: DeviceContext


@dataclass
class PolicyDecision:
    """The allow/block/prompt verdict for one event.

    ``decision`` is kept as a plain string so that a misbehaving evaluator
    can be detected downstream rather than rejected here.
    """

    decision: str
    matched_rules: List[str] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResponseResult:
    success: bool
    action: str
    message: str = ""


@dataclass(frozen=True)
class DetectionRecord:
    """Terminal artifact of one pipeline run: event, verdict, outcome."""

    event: DetectionEvent
    decision: PolicyDecision
    result: ResponseResult


# ---------------------------------------------------------------------------
# Agent status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentStatus:
    """Point-in-time snapshot of the agent, as persisted for ``status``."""

    pid: int
    is_running: bool
    started_at: Optional[str]
    updated_at: str
    events_processed: int
    process_detection: bool
    policy_engine: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pid": self.pid,
            "isRunning": self.is_running,
            "startedAt": self.started_at,
            "updatedAt": self.updated_at,
            "eventsProcessed": self.events_processed,
            "components": {
                "processDetection": self.process_detection,
                "policyEngine": self.policy_engine,
            },
        }
