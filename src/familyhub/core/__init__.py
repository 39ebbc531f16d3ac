# Core Module - Shared Utilities
#
# Core module provides shared functionality across all FamilyHub modules:
# - Audit logging
# - Configuration
# - SQLite connection helper

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
    obfuscate_user_id,
)
from .config import VaultSettings, get_settings

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_security_event",
    "obfuscate_user_id",
    # Configuration
    "VaultSettings",
    "get_settings",
]
