from .engine import PolicyEngine, PolicyEvaluator, fail_closed_decision

__all__ = [
    "PolicyEngine",
    "PolicyEvaluator",
    "fail_closed_decision",
]
