# AI Monitor - Audit Trail
#
# Append-only, structured audit logging for every detection, policy
# decision and enforcement action the agent takes. One JSON line per
# event, written to a daily file so an operator can reconstruct what the
# agent decided and why.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

from ..models import DetectionEvent, PolicyDecision, ResponseResult


class EventType(str, Enum):
    """Types of events recorded in the audit trail."""

    # Lifecycle
    AGENT_START = "agent.start"
    AGENT_STOP = "agent.stop"

    # Pipeline
    AI_TOOL_DETECTED = "ai_tool.detected"
    POLICY_DECISION = "policy.decision"
    RESPONSE_EXECUTED = "response.executed"
    PROMPT_ANSWERED = "prompt.answered"
    PROCESS_TERMINATED = "process.terminated"

    # Failures that were absorbed by the pipeline
    COLLABORATOR_FAILURE = "collaborator.failure"
    PIPELINE_ERROR = "pipeline.error"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: Normal activity (logged only)
    - INVESTIGATE: Something unusual the operator may want to look at
    - ALERT: The agent enforced a block
    - CRITICAL: The pipeline hit a fault and fell back to blocking
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for monitoring events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and audit ID
    - OS user / host context capture
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("ai_monitor.audit")

    def _setup_file_handler(self):
        """Attach a daily audit file to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog renders JSON

        audit_logger = logging.getLogger("ai_monitor.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        self._file_handler = file_handler

    def close(self):
        """Detach and close the audit file handler."""
        logging.getLogger("ai_monitor.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Append one event to the audit trail.

        Returns:
            str: Audit ID (UUID) for reference
        """
        audit_id = str(uuid4())

        self.logger.info(
            "audit_event",
            audit_id=audit_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=user_context or self._get_default_user_context(),
        )

        return audit_id

    def log_detection(self, event: DetectionEvent) -> str:
        """Record that an AI tool was detected."""
        return self.log_event(
            event_type=EventType.AI_TOOL_DETECTED,
            severity=EventSeverity.INVESTIGATE,
            message=f"AI tool detected: {event.ai_tool} ({event.process_name})",
            details=event.to_dict(),
        )

    def log_policy_decision(self, event: DetectionEvent, decision: PolicyDecision) -> str:
        """Record the policy verdict for an event."""
        return self.log_event(
            event_type=EventType.POLICY_DECISION,
            severity=EventSeverity.INFO,
            message=f"Policy decision: {decision.decision} (confidence: {decision.confidence:.0%})",
            details={
                "event_id": event.id,
                "decision": decision.decision,
                "matched_rules": list(decision.matched_rules),
                "confidence": decision.confidence,
                "reasoning": list(decision.reasoning),
            },
        )

    def log_response(self, event: DetectionEvent, result: ResponseResult) -> str:
        """Record the enforcement outcome for an event."""
        if not result.success:
            severity = EventSeverity.CRITICAL
        elif result.action == "block":
            severity = EventSeverity.ALERT
        else:
            severity = EventSeverity.INFO

        return self.log_event(
            event_type=EventType.RESPONSE_EXECUTED,
            severity=severity,
            message=result.message or f"Response executed: {result.action}",
            details={
                "event_id": event.id,
                "ai_tool": event.ai_tool,
                "action": result.action,
                "success": result.success,
            },
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def configure_audit_logger(log_dir: Path) -> AuditLogger:
    """Replace the global audit logger with one writing to ``log_dir``."""
    global _audit_logger
    if _audit_logger is not None:
        _audit_logger.close()
    _audit_logger = AuditLogger(log_dir=log_dir)
    return _audit_logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging audit events.

    Usage:
        log_security_event(
            EventType.PROCESS_TERMINATED,
            EventSeverity.ALERT,
            "Terminated blocked AI tool",
            details={"process": "chrome.exe", "pid": 1234}
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
