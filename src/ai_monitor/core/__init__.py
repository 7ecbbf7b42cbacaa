# Core Module - Shared Utilities
#
# Core module provides shared functionality across all AI Monitor modules:
# - Audit logging
# - Configuration

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
    log_security_event,
)
from .config import (
    AgentConfig,
    default_data_dir,
    load_config,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "configure_audit_logger",
    "get_audit_logger",
    "log_security_event",
    # Configuration
    "AgentConfig",
    "default_data_dir",
    "load_config",
]
