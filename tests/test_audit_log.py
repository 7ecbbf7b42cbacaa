"""Tests for the structured audit trail."""

import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

import ai_monitor.core.audit_log as audit_mod
from ai_monitor.core import (
    AuditLogger,
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
    log_security_event,
)
from ai_monitor.models import DetectionEvent, DetectionSource, PolicyDecision, ResponseResult


def _event():
    return DetectionEvent(
        id="event_1_1700000000000",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        event_type="ai_tool_detected",
        source=DetectionSource.PROCESS,
        ai_tool="Claude AI",
        confidence=0.9,
        process_id=4242,
        process_name="chrome",
        username="alice",
        window_title="Claude - Google Chrome",
    )


def _entries(logger):
    lines = logger.log_file.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


@pytest.fixture
def audit(tmp_path):
    logger = AuditLogger(log_dir=tmp_path / "audit")
    yield logger
    logger.close()


class TestAuditLogger:

    def test_log_event_writes_json_line(self, audit):
        audit_id = audit.log_event(
            EventType.AGENT_START, EventSeverity.INFO, "started", details={"poll_interval": 5.0}
        )
        entry = _entries(audit)[-1]
        assert entry["audit_id"] == audit_id
        assert entry["event_type"] == "agent.start"
        assert entry["severity"] == "info"
        assert entry["details"] == {"poll_interval": 5.0}
        assert "hostname" in entry["user_context"]

    def test_daily_file_name(self, audit):
        assert audit.log_file.name.startswith("audit_")
        assert audit.log_file.suffix == ".log"

    def test_log_detection(self, audit):
        audit.log_detection(_event())
        entry = _entries(audit)[-1]
        assert entry["event_type"] == "ai_tool.detected"
        assert entry["details"]["aiTool"] == "Claude AI"
        assert entry["details"]["processId"] == 4242

    def test_log_policy_decision(self, audit):
        decision = PolicyDecision("prompt", confidence=0.8, reasoning=["Default policy applied"])
        audit.log_policy_decision(_event(), decision)
        entry = _entries(audit)[-1]
        assert entry["event_type"] == "policy.decision"
        assert entry["details"]["decision"] == "prompt"
        assert entry["details"]["reasoning"] == ["Default policy applied"]

    @pytest.mark.parametrize("result,severity", [
        (ResponseResult(True, "allow", "ok"), EventSeverity.INFO),
        (ResponseResult(True, "block", "blocked"), EventSeverity.ALERT),
        (ResponseResult(False, "unknown", "Unknown decision: x"), EventSeverity.CRITICAL),
    ])
    def test_log_response_severity(self, audit, result, severity):
        with patch.object(audit, "log_event") as mock_log:
            audit.log_response(_event(), result)
        assert mock_log.call_args.kwargs["severity"] == severity
        assert mock_log.call_args.kwargs["event_type"] == EventType.RESPONSE_EXECUTED


class TestGlobalLogger:

    def test_singleton(self):
        assert get_audit_logger() is get_audit_logger()

    def test_configure_replaces_singleton(self, tmp_path):
        first = get_audit_logger()
        second = configure_audit_logger(tmp_path / "other")
        assert second is not first
        assert get_audit_logger() is second
        assert second.log_dir == tmp_path / "other"

    def test_log_security_event(self):
        audit_id = log_security_event(
            EventType.PROCESS_TERMINATED,
            EventSeverity.ALERT,
            "Terminated blocked AI tool",
            details={"pid": 4242},
        )
        entry = _entries(audit_mod._audit_logger)[-1]
        assert entry["audit_id"] == audit_id
        assert entry["event_type"] == "process.terminated"
