"""
AI Monitor Exception Classes
"""


class AgentException(Exception):
    """Base exception for monitoring agent operations"""
    pass


class ProcessQueryFailed(AgentException):
    """Raised when the host process list cannot be queried"""
    pass


class NotificationFailed(AgentException):
    """Raised when a desktop notification cannot be shown"""
    pass


class PromptFailed(AgentException):
    """Raised when the operator prompt cannot be shown or answered"""
    pass


class PromptTimeout(PromptFailed):
    """Raised when the operator does not answer the prompt in time"""
    pass


class InvalidConfiguration(AgentException):
    """Raised when agent configuration is invalid"""
    pass


class StatusReadError(AgentException):
    """Raised when the persisted status snapshot exists but cannot be read"""
    pass
