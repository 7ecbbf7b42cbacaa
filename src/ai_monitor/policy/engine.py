# Policy - Decision Engine
#
# Turns one detection event plus its user/device context into exactly one
# allow/block/prompt decision.
#
# The (event, context) -> PolicyDecision signature is the contract the
# orchestrator and response executor depend on. Richer evaluators subclass
# PolicyEvaluator and override _decide(); faults inside _decide() always
# come back as a block decision.

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from ..exceptions import InvalidConfiguration
from ..models import Decision, DetectionEvent, PolicyContext, PolicyDecision

logger = logging.getLogger(__name__)

DEFAULT_POLICY_CONFIDENCE = 0.8
FAIL_CLOSED_CONFIDENCE = 1.0


def fail_closed_decision(reason: str) -> PolicyDecision:
    """Block decision used whenever evaluation cannot be trusted."""
    return PolicyDecision(
        decision=Decision.BLOCK.value,
        matched_rules=[],
        confidence=FAIL_CLOSED_CONFIDENCE,
        reasoning=[f"Policy evaluation failed: {reason}", "Defaulting to block"],
        metadata={
            "evaluation_time": datetime.now(timezone.utc).isoformat(),
            "fail_closed": True,
        },
    )


class PolicyEvaluator(ABC):
    """
    Pluggable single-decision evaluator.

    Subclasses implement _decide(); evaluate() wraps it so callers never
    see an exception.
    """

    def __init__(self):
        self.is_running = False

    def start(self):
        self.is_running = True
        logger.info("Policy engine started")

    def stop(self):
        self.is_running = False
        logger.info("Policy engine stopped")

    def is_engine_running(self) -> bool:
        return self.is_running

    def evaluate(self, event: DetectionEvent, context: PolicyContext) -> PolicyDecision:
        """Return one decision for the event. Never raises."""
        try:
            return self._decide(event, context)
        except Exception as e:
            logger.error("Policy evaluation failed for %s: %s", event.id, e)
            return fail_closed_decision(str(e))

    @abstractmethod
    def _decide(self, event: DetectionEvent, context: PolicyContext) -> PolicyDecision:
        """Produce the decision for one event."""
        pass


class PolicyEngine(PolicyEvaluator):
    """
    Default policy: apply the configured default action to every AI tool.

    Args:
        default_action: "allow", "block" or "prompt" (default: prompt)
    """

    def __init__(self, default_action: str = Decision.PROMPT.value):
        super().__init__()
        try:
            self.default_action = Decision.from_string(default_action)
        except (ValueError, AttributeError):
            raise InvalidConfiguration(f"Unknown default policy action: {default_action!r}") from None

    def _decide(self, event: DetectionEvent, context: PolicyContext) -> PolicyDecision:
        return PolicyDecision(
            decision=self.default_action.value,
            matched_rules=[],
            confidence=DEFAULT_POLICY_CONFIDENCE,
            reasoning=["Default policy applied"],
            metadata={"evaluation_time": datetime.now(timezone.utc).isoformat()},
        )
