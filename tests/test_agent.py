"""Tests for the AI monitoring agent orchestrator.

Covers:
  - Lifecycle: start/stop, idempotent misuse, status snapshot file
  - Poll cycle: match -> policy -> response, failure isolation
  - Fail-closed fallbacks: policy fault, response fault, prompt failure
  - Test trigger and recent detection history
  - Background tickers: no cycles or status writes after stop()
"""

import json
import os
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from ai_monitor.agent import AgentPhase, AIMonitoringAgent, StatusStore, build_policy_context
from ai_monitor.core import AgentConfig
from ai_monitor.exceptions import ProcessQueryFailed, PromptFailed
from ai_monitor.guardian import ProcessDetector
from ai_monitor.models import ObservedProcess, PolicyDecision
from ai_monitor.policy import PolicyEngine
from ai_monitor.response import ResponseExecutor

CLAUDE = ObservedProcess(id=4242, name="chrome", window_title="Claude - Google Chrome")
CHATGPT = ObservedProcess(id=5151, name="chrome", window_title="ChatGPT")
NOTEPAD = ObservedProcess(id=7, name="notepad", window_title="todo.txt")


@pytest.fixture
def config(tmp_path):
    # Long intervals so background tickers never fire during a test.
    return AgentConfig(poll_interval=3600, status_interval=3600, data_dir=tmp_path)


@pytest.fixture
def processes():
    return []


@pytest.fixture
def collaborators():
    return {
        "notifier": MagicMock(),
        "prompter": MagicMock(side_effect=PromptFailed("no display")),
        "terminator": MagicMock(return_value=True),
    }


def _make_agent(config, processes, collaborators, default_action="prompt", query=None):
    return AIMonitoringAgent(
        config=config,
        detector=ProcessDetector(query=query or (lambda: list(processes))),
        policy_engine=PolicyEngine(default_action),
        response_executor=ResponseExecutor(**collaborators),
    )


@pytest.fixture
def agent(config, processes, collaborators):
    agent = _make_agent(config, processes, collaborators)
    yield agent
    agent.stop()


def _read_status(config):
    return json.loads(config.status_file.read_text(encoding="utf-8"))


# ── Lifecycle ───────────────────────────────────────────────────────


class TestLifecycle:

    def test_start_publishes_status(self, agent, config):
        agent.start()
        assert agent.is_running
        status = _read_status(config)
        assert status["pid"] == os.getpid()
        assert status["isRunning"] is True
        assert status["startedAt"]
        assert status["eventsProcessed"] == 0
        assert status["components"] == {"processDetection": True, "policyEngine": True}

    def test_stop_removes_status(self, agent, config):
        agent.start()
        agent.stop()
        assert agent.state.phase == AgentPhase.STOPPED
        assert not config.status_file.exists()
        assert agent.detector.is_running is False
        assert agent.policy_engine.is_engine_running() is False

    def test_double_start_is_noop(self, agent):
        agent.start()
        with patch.object(agent.detector, "start") as detector_start:
            agent.start()
        detector_start.assert_not_called()
        assert agent.is_running

    def test_stop_when_stopped_is_noop(self, agent, config):
        agent.stop()
        assert agent.state.phase == AgentPhase.STOPPED
        assert not config.status_file.exists()

    def test_restart(self, agent, config):
        agent.start()
        agent.stop()
        agent.start()
        assert agent.is_running
        assert _read_status(config)["isRunning"] is True

    def test_start_failure_rolls_back(self, agent):
        with patch.object(agent.policy_engine, "start", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                agent.start()
        assert agent.state.phase == AgentPhase.STOPPED
        assert agent.detector.is_running is False

    def test_get_status_when_stopped(self, agent):
        status = agent.get_status()
        assert status.is_running is False
        assert status.started_at is None
        assert status.process_detection is False

    def test_report_status_refreshes_snapshot(self, agent, config):
        agent.start()
        config.status_file.unlink()
        agent.report_status()
        assert _read_status(config)["isRunning"] is True


# ── Poll cycle ──────────────────────────────────────────────────────


class TestPollCycle:

    def test_claude_prompt_failure_blocks(self, agent, processes, collaborators, config):
        processes.append(CLAUDE)
        agent.start()

        assert agent.run_poll_cycle() == 1

        record = agent.recent_detections()[-1]
        assert record.event.ai_tool == "Claude AI"
        assert record.event.confidence == 0.9
        assert record.event.process_id == 4242
        assert record.decision.decision == "prompt"
        assert record.result.action == "block"
        assert record.result.success is True
        collaborators["terminator"].assert_called_once_with(4242)
        assert agent.state.events_processed == 1
        assert _read_status(config)["eventsProcessed"] == 1

    def test_non_matching_processes_ignored(self, agent, processes):
        processes.append(NOTEPAD)
        agent.start()
        assert agent.run_poll_cycle() == 0
        assert agent.state.events_processed == 0

    def test_events_in_listing_order(self, agent, processes):
        processes.extend([CHATGPT, NOTEPAD, CLAUDE])
        agent.start()
        assert agent.run_poll_cycle() == 2
        tools = [r.event.ai_tool for r in agent.recent_detections()]
        assert tools == ["ChatGPT (Chrome)", "Claude AI"]

    def test_event_ids_unique(self, agent, processes):
        processes.extend([CHATGPT, CLAUDE])
        agent.start()
        agent.run_poll_cycle()
        agent.run_poll_cycle()
        ids = [r.event.id for r in agent.recent_detections()]
        assert len(ids) == 4
        assert len(set(ids)) == 4
        assert ids[0].startswith("event_1_")

    def test_query_failure_still_publishes_status(self, config, processes, collaborators):
        def broken():
            raise ProcessQueryFailed("powershell timed out")

        agent = _make_agent(config, processes, collaborators, query=broken)
        agent.start()
        config.status_file.unlink()
        try:
            assert agent.run_poll_cycle() == 0
            assert _read_status(config)["eventsProcessed"] == 0
        finally:
            agent.stop()

    def test_not_running_does_nothing(self, agent, processes):
        processes.append(CLAUDE)
        assert agent.run_poll_cycle() == 0
        assert agent.state.events_processed == 0

    def test_overlapping_cycle_skipped(self, agent, processes):
        processes.append(CLAUDE)
        agent.start()
        with agent._cycle_guard:
            assert agent.run_poll_cycle() == 0
        assert agent.state.events_processed == 0

    def test_one_bad_event_does_not_abort_cycle(self, agent, processes):
        processes.extend([CHATGPT, CLAUDE])
        agent.start()
        real_handle = agent.handle_detection
        calls = []

        def flaky(source, process, match):
            calls.append(process.id)
            if process.id == CHATGPT.id:
                raise RuntimeError("boom")
            return real_handle(source, process, match)

        with patch.object(agent, "handle_detection", side_effect=flaky):
            assert agent.run_poll_cycle() == 1
        assert calls == [CHATGPT.id, CLAUDE.id]

    def test_stop_mid_cycle_skips_remaining(self, agent, processes, collaborators, config):
        processes.extend([CHATGPT, CLAUDE])
        agent.start()
        collaborators["notifier"].side_effect = lambda title, message: agent.stop()

        assert agent.run_poll_cycle() == 1
        assert agent.state.events_processed == 1
        assert not config.status_file.exists()


# ── Fail-closed fallbacks ───────────────────────────────────────────


class TestFailClosed:

    def test_policy_exception_blocks(self, agent, processes, collaborators):
        processes.append(CLAUDE)
        agent.start()
        with patch.object(agent.policy_engine, "evaluate", side_effect=RuntimeError("rules")):
            agent.run_poll_cycle()

        record = agent.recent_detections()[-1]
        assert record.decision.decision == "block"
        assert record.decision.metadata["fail_closed"] is True
        assert record.result.action == "block"

    def test_response_exception_falls_back_to_block(self, agent, processes, collaborators):
        processes.append(CLAUDE)
        agent.start()
        with patch.object(agent.response_executor, "execute", side_effect=RuntimeError("x")):
            agent.run_poll_cycle()

        record = agent.recent_detections()[-1]
        assert record.result.action == "block"
        collaborators["terminator"].assert_called_once_with(4242)

    def test_unknown_decision_reported(self, agent, processes):
        processes.append(CLAUDE)
        agent.start()
        with patch.object(agent.policy_engine, "evaluate",
                          return_value=PolicyDecision(decision="maybe")):
            agent.run_poll_cycle()

        result = agent.recent_detections()[-1].result
        assert result.success is False
        assert result.action == "unknown"

    def test_audit_failure_does_not_break_pipeline(self, agent, processes):
        processes.append(CLAUDE)
        agent.start()
        with patch("ai_monitor.agent.orchestrator.get_audit_logger",
                   side_effect=OSError("disk full")):
            assert agent.run_poll_cycle() == 1

    @pytest.mark.parametrize("default_action,answer,expected", [
        ("block", None, "block"),
        ("prompt", "allow", "allow"),
    ])
    def test_audit_failure_does_not_change_response(self, config, processes, collaborators,
                                                    default_action, answer, expected):
        processes.append(CLAUDE)
        if answer is not None:
            collaborators["prompter"] = MagicMock(return_value=answer)
        agent = _make_agent(config, processes, collaborators, default_action=default_action)
        agent.start()
        try:
            with patch("ai_monitor.agent.orchestrator.get_audit_logger",
                       side_effect=OSError("read-only file system")), \
                 patch("ai_monitor.core.audit_log.get_audit_logger",
                       side_effect=OSError("read-only file system")):
                assert agent.run_poll_cycle() == 1
        finally:
            agent.stop()

        result = agent.recent_detections()[-1].result
        assert result.success is True
        assert result.action == expected
        assert collaborators["notifier"].call_count == 1
        assert collaborators["terminator"].call_count == (1 if expected == "block" else 0)

# ── Test trigger / history ──────────────────────────────────────────


class TestTriggerTest:

    def test_increments_counter_and_publishes(self, agent, config):
        agent.start()
        record = agent.trigger_test()

        assert agent.state.events_processed == 1
        assert record.event.ai_tool == "Test AI Tool"
        assert record.event.source.value == "test"
        assert record.event.confidence == 1.0
        assert record.event.process_id == os.getpid()
        assert record.event.metadata["match_details"] == {"test": True}
        assert _read_status(config)["eventsProcessed"] == 1

    def test_block_never_kills_agent(self, config, processes, collaborators):
        agent = _make_agent(config, processes, collaborators, default_action="block")
        agent.start()
        try:
            assert agent.trigger_test().result.action == "block"
        finally:
            agent.stop()
        collaborators["terminator"].assert_not_called()

    def test_allow(self, config, processes, collaborators):
        agent = _make_agent(config, processes, collaborators, default_action="allow")
        agent.start()
        try:
            assert agent.trigger_test().result.action == "allow"
        finally:
            agent.stop()

    def test_recent_detections_limit(self, agent):
        agent.start()
        for _ in range(5):
            agent.trigger_test()
        assert len(agent.recent_detections(limit=3)) == 3
        assert agent.recent_detections(limit=0) == []
        assert agent.recent_detections(limit=3)[-1].event.id.startswith("event_5_")


# ── Background tickers ──────────────────────────────────────────────


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestBackgroundTickers:
    """Real poll/status threads with short intervals."""

    @pytest.fixture
    def fast_config(self, tmp_path):
        return AgentConfig(poll_interval=0.05, status_interval=0.05, data_dir=tmp_path)

    def test_no_cycles_after_stop(self, fast_config, collaborators):
        query = MagicMock(return_value=[])
        agent = _make_agent(fast_config, [], collaborators, query=query)
        agent.start()
        try:
            assert _wait_for(lambda: query.call_count >= 3)
            assert fast_config.status_file.exists()
        finally:
            agent.stop()

        calls_at_stop = query.call_count
        time.sleep(0.3)
        assert query.call_count == calls_at_stop
        assert not fast_config.status_file.exists()

    def test_stop_from_another_thread_during_prompt(self, fast_config, collaborators):
        prompting = threading.Event()
        release = threading.Event()

        def slow_prompt(ai_tool, process_name, timeout):
            prompting.set()
            release.wait(5)
            return "allow"

        collaborators["prompter"] = slow_prompt
        query = MagicMock(return_value=[CLAUDE])
        agent = _make_agent(fast_config, [], collaborators, query=query)
        agent.start()
        try:
            assert prompting.wait(2)

            stopper = threading.Thread(target=agent.stop)
            stopper.start()
            stopper.join(timeout=5)
            assert not stopper.is_alive()
            assert agent.state.phase == AgentPhase.STOPPED
            assert not fast_config.status_file.exists()
        finally:
            release.set()

        # The in-flight event finishes once the operator answers.
        assert agent._cycle_guard.acquire(timeout=2)
        agent._cycle_guard.release()

        assert agent.recent_detections()[-1].result.action == "allow"
        assert agent.state.events_processed == 1
        time.sleep(0.2)
        assert query.call_count == 1
        assert not fast_config.status_file.exists()


class TestPolicyContext:

    def test_context_uses_username(self):
        context = build_policy_context("alice")
        assert context.user.username == "alice"
        assert context.user.groups == []
        assert context.device.name
