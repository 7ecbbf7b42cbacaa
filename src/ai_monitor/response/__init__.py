from .executor import ResponseExecutor
from .termination import terminate_process

__all__ = [
    "ResponseExecutor",
    "terminate_process",
]
