# Response - Enforcement Executor
#
# Maps a policy decision to an enforcement action:
#
#   allow  -> notify the operator
#   block  -> notify, then best-effort terminate the process
#   prompt -> ask the operator; "allow" takes the allow path, anything
#             else (including failure or timeout) takes the block path
#
# Every path resolves exactly once. Collaborator failures are logged and
# never change the reported outcome of allow/block.

import logging
import os
from typing import Callable, Optional

from ..core import EventSeverity, EventType, log_security_event
from ..models import Decision, DetectionEvent, PolicyDecision, ResponseResult
from .desktop import show_prompt, show_toast
from .termination import terminate_process

logger = logging.getLogger(__name__)

ACTION_UNKNOWN = "unknown"


class ResponseExecutor:
    """
    Executes the enforcement action for one detection event.

    Args:
        notifier: (title, message) -> None; fire-and-forget toast
        prompter: (ai_tool, process_name, timeout) -> "allow" | "block"
        terminator: (pid) -> bool
        prompt_timeout: Seconds to wait for the operator
        terminate_on_block: Kill the detected process on block
    """

    def __init__(
        self,
        notifier: Optional[Callable[[str, str], None]] = None,
        prompter: Optional[Callable[[str, str, float], str]] = None,
        terminator: Optional[Callable[[int], bool]] = None,
        prompt_timeout: float = 120.0,
        terminate_on_block: bool = True,
    ):
        self._notify = notifier or show_toast
        self._prompt = prompter or show_prompt
        self._terminate = terminator or terminate_process
        self.prompt_timeout = prompt_timeout
        self.terminate_on_block = terminate_on_block

    def execute(self, decision: PolicyDecision, event: DetectionEvent) -> ResponseResult:
        """Dispatch on ``decision.decision`` and return the outcome."""
        logger.info("Executing response %s for event %s", decision.decision, event.id)

        if decision.decision == Decision.ALLOW.value:
            return self.execute_allow(event)
        if decision.decision == Decision.BLOCK.value:
            return self.execute_block(event)
        if decision.decision == Decision.PROMPT.value:
            return self.execute_prompt(event)

        logger.error("Unknown decision %r for event %s", decision.decision, event.id)
        return ResponseResult(
            success=False,
            action=ACTION_UNKNOWN,
            message=f"Unknown decision: {decision.decision}",
        )

    def execute_allow(self, event: DetectionEvent) -> ResponseResult:
        logger.info("Allowing AI tool usage: %s", event.ai_tool)

        self._show_toast("AI Tool Access Allowed", f"Access to {event.ai_tool} has been allowed.")

        return ResponseResult(
            success=True,
            action=Decision.ALLOW.value,
            message=f"AI tool usage allowed for {event.ai_tool}",
        )

    def execute_block(self, event: DetectionEvent) -> ResponseResult:
        logger.info("Blocking AI tool usage: %s", event.ai_tool)

        self._show_toast(
            "AI Tool Access Blocked",
            f"Access to {event.ai_tool} has been blocked by policy.",
        )

        # Synthetic test events carry the agent's own pid.
        if event.process_id and event.process_id != os.getpid() and self.terminate_on_block:
            self._terminate_process(event)

        return ResponseResult(
            success=True,
            action=Decision.BLOCK.value,
            message=f"AI tool usage blocked for {event.ai_tool}",
        )

    def execute_prompt(self, event: DetectionEvent) -> ResponseResult:
        logger.info("Prompting user for decision: %s", event.ai_tool)

        try:
            choice = self._prompt(event.ai_tool, event.process_name, self.prompt_timeout)
        except Exception as e:
            logger.error("Prompt failed, defaulting to block: %s", e)
            self._audit(
                EventType.COLLABORATOR_FAILURE,
                EventSeverity.INVESTIGATE,
                f"Prompt failed, defaulting to block: {e}",
                {"event_id": event.id, "collaborator": "prompt"},
            )
            return self.execute_block(event)

        answer = choice.strip().lower() if isinstance(choice, str) else ""
        self._audit(
            EventType.PROMPT_ANSWERED,
            EventSeverity.INFO,
            f"Operator answered prompt for {event.ai_tool}: {answer or 'no answer'}",
            {"event_id": event.id, "answer": answer},
        )

        if answer == Decision.ALLOW.value:
            return self.execute_allow(event)
        return self.execute_block(event)

    # ------------------------------------------------------------------
    # Collaborator wrappers
    # ------------------------------------------------------------------

    def _show_toast(self, title: str, message: str) -> None:
        try:
            self._notify(title, message)
        except Exception as e:
            logger.error("Failed to show toast: %s", e)

    def _terminate_process(self, event: DetectionEvent) -> None:
        pid = event.process_id
        try:
            terminated = self._terminate(pid)
        except Exception as e:
            logger.error("Failed to terminate process %s: %s", pid, e)
            terminated = False

        if terminated:
            logger.info("Process terminated: %s", pid)
            self._audit(
                EventType.PROCESS_TERMINATED,
                EventSeverity.ALERT,
                f"Terminated {event.process_name} (PID: {pid}) running {event.ai_tool}",
                {"event_id": event.id, "pid": pid, "ai_tool": event.ai_tool},
            )
        else:
            self._audit(
                EventType.COLLABORATOR_FAILURE,
                EventSeverity.INVESTIGATE,
                f"Could not terminate {event.process_name} (PID: {pid})",
                {"event_id": event.id, "pid": pid, "collaborator": "terminate"},
            )

    @staticmethod
    def _audit(event_type: EventType, severity: EventSeverity, message: str, details: dict) -> None:
        """Write an audit event. A failing audit trail never changes the outcome."""
        try:
            log_security_event(event_type, severity, message, details=details)
        except Exception as e:
            logger.error("Failed to write audit log: %s", e)
