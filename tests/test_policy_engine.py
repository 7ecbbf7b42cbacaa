"""Tests for the policy engine and its fail-closed behaviour."""

from datetime import datetime, timezone

import pytest

from ai_monitor.exceptions import InvalidConfiguration
from ai_monitor.models import (
    DetectionEvent,
    DetectionSource,
    DeviceContext,
    PolicyContext,
    UserContext,
)
from ai_monitor.policy import PolicyEngine, PolicyEvaluator, fail_closed_decision


def _event():
    return DetectionEvent(
        id="event_1_1700000000000",
        timestamp=datetime.now(timezone.utc),
        event_type="ai_tool_detected",
        source=DetectionSource.PROCESS,
        ai_tool="Claude AI",
        confidence=0.9,
        process_id=4242,
        process_name="chrome",
        username="alice",
        window_title="Claude - Google Chrome",
    )


def _context():
    return PolicyContext(
        user=UserContext(username="alice"),
        device=DeviceContext(id="WS-01", name="WS-01", type="Windows"),
    )


class _ExplodingEvaluator(PolicyEvaluator):
    def _decide(self, event, context):
        raise RuntimeError("rule store unavailable")


class TestPolicyEngine:

    def test_default_is_prompt(self):
        decision = PolicyEngine().evaluate(_event(), _context())
        assert decision.decision == "prompt"
        assert decision.confidence == 0.8
        assert decision.reasoning == ["Default policy applied"]
        assert decision.matched_rules == []
        assert "evaluation_time" in decision.metadata

    @pytest.mark.parametrize("action", ["allow", "block", "prompt"])
    def test_configured_default(self, action):
        assert PolicyEngine(action).evaluate(_event(), _context()).decision == action

    def test_action_is_case_insensitive(self):
        assert PolicyEngine("BLOCK").evaluate(_event(), _context()).decision == "block"

    def test_unknown_action_rejected(self):
        with pytest.raises(InvalidConfiguration):
            PolicyEngine("quarantine")

    def test_running_flag(self):
        engine = PolicyEngine()
        assert engine.is_engine_running() is False
        engine.start()
        assert engine.is_engine_running() is True
        engine.stop()
        assert engine.is_engine_running() is False

    def test_each_call_yields_fresh_decision(self):
        engine = PolicyEngine()
        first = engine.evaluate(_event(), _context())
        second = engine.evaluate(_event(), _context())
        assert first is not second


class TestFailClosed:

    def test_evaluator_exception_becomes_block(self):
        decision = _ExplodingEvaluator().evaluate(_event(), _context())
        assert decision.decision == "block"
        assert decision.confidence == 1.0
        assert decision.metadata["fail_closed"] is True
        assert decision.reasoning == [
            "Policy evaluation failed: rule store unavailable",
            "Defaulting to block",
        ]

    def test_fail_closed_decision_shape(self):
        decision = fail_closed_decision("boom")
        assert decision.decision == "block"
        assert decision.matched_rules == []
