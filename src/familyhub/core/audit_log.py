# Vault - Audit Logging
#
# Append-only audit log for every vault security event.
# PIN changes, verification attempts, lockouts and secret access are all
# logged with timestamps and (obfuscated) user context for later review.
#
# Never log PINs, hashes, salts or secret values. User ids are logged in
# the same base64-obfuscated form used for vault tags.

import base64
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of vault events that can be logged."""

    # PIN Events
    PIN_SET = "pin.set"
    PIN_VERIFIED = "pin.verified"
    PIN_FAILED = "pin.failed"
    PIN_LOCKOUT = "pin.lockout"
    PIN_LOCKED_ATTEMPT = "pin.locked_attempt"
    PIN_LOCKOUT_EXPIRED = "pin.lockout_expired"

    # Secret Events
    SECRET_SAVED = "secret.saved"
    SECRET_ACCESSED = "secret.accessed"
    SECRET_DELETED = "secret.deleted"
    SECRET_LISTED = "secret.listed"

    # Store Events
    STORE_ERROR = "store.error"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for vault events.

    - INFO: Normal activity (logged only)
    - INVESTIGATE: Something unusual (wrong PIN)
    - ALERT: Protective action taken (lockout)
    - CRITICAL: Infrastructure failure
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


def obfuscate_user_id(user_id: str) -> str:
    """Base64 form of a user id, as stored in vault tags."""
    return base64.b64encode(user_id.encode("utf-8")).decode("ascii")


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - Daily log file under log_dir
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs
                     (default: FAMILYHUB_AUDIT_LOG_DIR or ./audit_logs)
        """
        if log_dir is None:
            from .config import get_settings
            log_dir = get_settings().audit_log_dir

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("familyhub.audit")

    def _setup_file_handler(self):
        """Attach a daily log file handler to the root logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.INFO)

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secret values!)
            user_id: Plain user id; logged obfuscated

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user": obfuscate_user_id(user_id) if user_id else None,
            "platform": sys.platform,
        }

        self.logger.info("vault_event", **event_data)

        return event_id

    def log_pin_event(
        self,
        event_type: EventType,
        user_id: str,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Log a PIN verification or lockout event."""
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"PIN: {message}",
            details=details,
            user_id=user_id,
        )

    def log_secret_event(
        self,
        event_type: EventType,
        user_id: str,
        category: str,
        key: str,
    ) -> str:
        """
        Log a secret access event.

        Only the (category, key) coordinates are logged, never the value.
        """
        return self.log_event(
            event_type=event_type,
            severity=EventSeverity.INFO,
            message=f"Secret: {event_type.value} {category}/{key}",
            details={"category": category, "key": key},
            user_id=user_id,
        )


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging vault events.

    Usage:
        log_security_event(
            EventType.STORE_ERROR,
            EventSeverity.CRITICAL,
            "Key Vault unreachable",
            details={"backend": "keyvault"}
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
