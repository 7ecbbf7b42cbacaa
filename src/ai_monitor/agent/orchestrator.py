# Agent - Orchestrator
#
# Owns the agent lifecycle and runs the detection pipeline:
#
#   poll ticker (every poll_interval)
#     list processes -> match -> event -> policy -> response -> status
#   status ticker (every status_interval)
#     log a summary -> republish status
#
# Lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED
#
# Poll cycles never overlap: a tick that arrives while a cycle is still
# in flight (e.g. waiting on an operator prompt) is skipped. Events inside
# a cycle are handled one at a time, in process-listing order.

import logging
import os
import platform
import socket
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque, List, Optional

from ..core import AgentConfig, AuditLogger, EventSeverity, EventType, get_audit_logger
from ..guardian import ProcessDetector
from ..models import (
    EVENT_TYPE_AI_TOOL_DETECTED,
    AgentStatus,
    DetectionEvent,
    DetectionRecord,
    DetectionSource,
    DeviceContext,
    Match,
    ObservedProcess,
    PolicyContext,
    PolicyDecision,
    ResponseResult,
    Signature,
    UserContext,
    now_iso,
)
from ..policy import PolicyEngine, PolicyEvaluator, fail_closed_decision
from ..response import ResponseExecutor
from .status import StatusStore

logger = logging.getLogger(__name__)

RECENT_DETECTIONS_LIMIT = 50
TICKER_JOIN_TIMEOUT = 1.0

TEST_TOOL_NAME = "Test AI Tool"


class AgentPhase(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class AgentState:
    """Mutable per-agent state. Only the owning agent mutates it."""

    phase: AgentPhase = AgentPhase.STOPPED
    started_at: Optional[str] = None
    events_processed: int = 0
    recent: Deque[DetectionRecord] = field(
        default_factory=lambda: deque(maxlen=RECENT_DETECTIONS_LIMIT)
    )

    @property
    def is_running(self) -> bool:
        return self.phase == AgentPhase.RUNNING


def current_username() -> str:
    return os.getenv("USERNAME") or os.getenv("USER") or "Unknown"


def build_policy_context(username: str) -> PolicyContext:
    """Describe who/where an event happened. Built fresh for every event."""
    device_name = os.getenv("COMPUTERNAME") or socket.gethostname() or "Unknown"
    return PolicyContext(
        user=UserContext(username=username, groups=[], permissions=[]),
        device=DeviceContext(
            id=device_name,
            name=device_name,
            type=platform.system() or "Unknown",
        ),
    )


class _Ticker:
    """Calls ``callback`` every ``interval`` seconds until ``stop_event`` is set."""

    def __init__(self, name: str, interval: float, callback: Callable[[], None],
                 stop_event: threading.Event):
        self.interval = interval
        self._callback = callback
        self._stop_event = stop_event
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self):
        self.thread.start()

    def _run(self):
        while not self._stop_event.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Unhandled error in %s", self.thread.name)

    def join(self, timeout: float):
        if self.thread is not threading.current_thread() and self.thread.is_alive():
            self.thread.join(timeout=timeout)


class AIMonitoringAgent:
    """
    Background monitor that detects AI tools and enforces policy.

    Every detection event yields exactly one policy decision and one
    response result. Faults downstream of detection fall back to block.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        detector: Optional[ProcessDetector] = None,
        policy_engine: Optional[PolicyEvaluator] = None,
        response_executor: Optional[ResponseExecutor] = None,
        status_store: Optional[StatusStore] = None,
    ):
        self.config = config or AgentConfig()
        self.detector = detector or ProcessDetector()
        self.policy_engine = policy_engine or PolicyEngine(self.config.default_action)
        self.response_executor = response_executor or ResponseExecutor(
            prompt_timeout=self.config.prompt_timeout,
            terminate_on_block=self.config.terminate_on_block,
        )
        self.status_store = status_store or StatusStore(self.config.status_file)

        self.state = AgentState()

        self._cycle_guard = threading.Lock()
        self._status_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._tickers: List[_Ticker] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        if self.state.phase != AgentPhase.STOPPED:
            logger.warning("Agent is already running")
            return

        logger.info("Starting AI Monitoring Agent")
        self.state.phase = AgentPhase.STARTING
        try:
            self.detector.start()
            self.policy_engine.start()
            self._install_tickers()
        except Exception:
            logger.exception("Failed to start agent")
            self._stop_event.set()
            self.detector.stop()
            self.policy_engine.stop()
            self.state.phase = AgentPhase.STOPPED
            raise

        self.state.phase = AgentPhase.RUNNING
        self.state.started_at = now_iso()
        self.persist_status()

        get_audit_logger().log_event(
            event_type=EventType.AGENT_START,
            severity=EventSeverity.INFO,
            message="AI Monitoring Agent started",
            details={
                "poll_interval": self.config.poll_interval,
                "status_interval": self.config.status_interval,
                "default_action": self.config.default_action,
            },
        )
        logger.info("AI Monitoring Agent started successfully")

    def stop(self):
        if self.state.phase != AgentPhase.RUNNING:
            logger.warning("Agent is not running")
            return

        logger.info("Stopping AI Monitoring Agent")
        self.state.phase = AgentPhase.STOPPING

        self._stop_event.set()
        self.detector.stop()
        self.policy_engine.stop()

        with self._status_lock:
            self.state.phase = AgentPhase.STOPPED
            self.state.started_at = None
            self.clear_status()

        # In-flight event handling is allowed to finish on its own.
        for ticker in self._tickers:
            ticker.join(timeout=TICKER_JOIN_TIMEOUT)
        self._tickers = []

        get_audit_logger().log_event(
            event_type=EventType.AGENT_STOP,
            severity=EventSeverity.INFO,
            message="AI Monitoring Agent stopped",
            details={"events_processed": self.state.events_processed},
        )
        logger.info("AI Monitoring Agent stopped successfully")

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def _install_tickers(self):
        self._stop_event = threading.Event()
        self._tickers = [
            _Ticker("ai-monitor-poll", self.config.poll_interval,
                    self.run_poll_cycle, self._stop_event),
            _Ticker("ai-monitor-status", self.config.status_interval,
                    self.report_status, self._stop_event),
        ]
        for ticker in self._tickers:
            ticker.start()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> AgentStatus:
        return AgentStatus(
            pid=os.getpid(),
            is_running=self.state.is_running,
            started_at=self.state.started_at,
            updated_at=now_iso(),
            events_processed=self.state.events_processed,
            process_detection=self.detector.is_running,
            policy_engine=self.policy_engine.is_engine_running(),
        )

    def persist_status(self):
        """Write the status snapshot. Does nothing unless running."""
        with self._status_lock:
            if not self.state.is_running:
                return
            try:
                self.status_store.write(self.get_status().to_dict())
            except OSError as e:
                logger.error("Failed to write status file: %s", e)

    def clear_status(self):
        try:
            self.status_store.clear()
        except OSError as e:
            logger.error("Failed to clear status file: %s", e)

    def report_status(self):
        """Periodic human-readable summary plus a snapshot refresh."""
        if not self.state.is_running:
            return
        status = self.get_status()
        logger.info(
            "[STATUS] Running: %s, Events Processed: %d",
            status.is_running, status.events_processed,
        )
        self.persist_status()

    def recent_detections(self, limit: int = 10) -> List[DetectionRecord]:
        """Most recent pipeline outcomes, oldest first."""
        if limit <= 0:
            return []
        return list(self.state.recent)[-limit:]

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    def run_poll_cycle(self) -> int:
        """Run one list -> match -> decide -> act pass.

        Returns:
            int: number of detection events handled
        """
        if not self.state.is_running:
            return 0

        if not self._cycle_guard.acquire(blocking=False):
            logger.debug("Previous poll cycle still in progress; skipping tick")
            return 0

        try:
            return self._run_cycle(self.state)
        finally:
            self._cycle_guard.release()

    def _run_cycle(self, state: AgentState) -> int:
        if not state.is_running:
            return 0

        handled = 0
        try:
            for process in self.detector.list_processes():
                if not state.is_running:
                    break
                try:
                    match = self.detector.match(process)
                    if match is None:
                        continue
                    self.handle_detection(DetectionSource.PROCESS, process, match)
                    handled += 1
                except Exception:
                    logger.exception("Error handling process %s (%s)", process.id, process.name)
        except Exception:
            logger.exception("Error in process monitoring")
        finally:
            self.persist_status()

        return handled

    # ------------------------------------------------------------------
    # Detection pipeline
    # ------------------------------------------------------------------

    def handle_detection(
        self,
        source: DetectionSource,
        process: ObservedProcess,
        match: Match,
    ) -> DetectionRecord:
        """Run one event through policy and response.

        Always produces exactly one decision and one result.
        """
        self.state.events_processed += 1
        event = self._create_event(self.state.events_processed, source, process, match)

        logger.info(
            "AI usage detected: %s (event=%s, source=%s, confidence=%.2f)",
            event.ai_tool, event.id, event.source.value, event.confidence,
        )
        self._audit(AuditLogger.log_detection, event)

        decision = self._evaluate(event)
        logger.info(
            "Policy evaluation completed: %s (event=%s, confidence=%.2f)",
            decision.decision, event.id, decision.confidence,
        )
        self._audit(AuditLogger.log_policy_decision, event, decision)

        result = self._respond(decision, event)
        logger.info(
            "Response executed: %s (event=%s, success=%s)",
            result.action, event.id, result.success,
        )
        self._audit(AuditLogger.log_response, event, result)

        record = DetectionRecord(event=event, decision=decision, result=result)
        self.state.recent.append(record)
        return record

    def trigger_test(self) -> DetectionRecord:
        """Drive one synthetic detection through the full pipeline."""
        logger.info("Triggering test detection")

        process = ObservedProcess(id=os.getpid(), name="python", window_title=TEST_TOOL_NAME)
        match = Match(
            signature=Signature(name=TEST_TOOL_NAME, process_name_hints=(), title_patterns=()),
            confidence=1.0,
            match_type=DetectionSource.TEST.value,
            match_details={"test": True},
        )

        with self._cycle_guard:
            record = self.handle_detection(DetectionSource.TEST, process, match)
        self.persist_status()
        return record

    def _create_event(
        self,
        sequence: int,
        source: DetectionSource,
        process: ObservedProcess,
        match: Match,
    ) -> DetectionEvent:
        created = datetime.now(timezone.utc)
        return DetectionEvent(
            id=f"event_{sequence}_{int(created.timestamp() * 1000)}",
            timestamp=created,
            event_type=EVENT_TYPE_AI_TOOL_DETECTED,
            source=source,
            ai_tool=match.signature.name,
            confidence=match.confidence,
            process_id=process.id,
            process_name=process.name,
            username=current_username(),
            window_title=process.window_title,
            metadata={
                "detection_source": source.value,
                "match_type": match.match_type,
                "match_details": dict(match.match_details),
            },
        )

    def _evaluate(self, event: DetectionEvent) -> PolicyDecision:
        try:
            context = build_policy_context(event.username)
            return self.policy_engine.evaluate(event, context)
        except Exception as e:
            logger.error("Policy evaluation raised for %s: %s", event.id, e)
            return fail_closed_decision(str(e))

    def _respond(self, decision: PolicyDecision, event: DetectionEvent) -> ResponseResult:
        try:
            return self.response_executor.execute(decision, event)
        except Exception as e:
            logger.error("Response failed for %s, falling back to block: %s", event.id, e)
            self._audit(
                AuditLogger.log_event,
                EventType.PIPELINE_ERROR,
                EventSeverity.CRITICAL,
                f"Response failed, falling back to block: {e}",
                {"event_id": event.id, "decision": decision.decision},
            )

        try:
            return self.response_executor.execute_block(event)
        except Exception as e:
            logger.error("Block fallback failed for %s: %s", event.id, e)
            return ResponseResult(
                success=False,
                action="block",
                message=f"Block enforcement failed for {event.ai_tool}: {e}",
            )

    @staticmethod
    def _audit(write: Callable[..., str], *args):
        """Call an AuditLogger method on the global logger; failures are logged only."""
        try:
            write(get_audit_logger(), *args)
        except Exception as e:
            logger.error("Failed to write audit log: %s", e)
