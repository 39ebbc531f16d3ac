# Vault - PIN-Gated Access Controller
#
# Single entry point for "verify PIN" and "verify PIN, then fetch one
# secret". get_secret_with_pin() is the only path in the application
# that returns an unmasked secret value.
#
# Verification order:
#   1. Lockout check (before any hashing; applies even with no PIN set)
#   2. PIN format check (does not consume an attempt)
#   3. No PIN set (does not consume an attempt)
#   4. Constant-time hash comparison
#   5. Success clears the lockout; failure records one attempt
#
# Every outcome, including store failures, comes back as a structured
# result with an ErrorCode so the HTTP layer never parses messages.

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Union

from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from ..core.config import VaultSettings
from .backends import SecretBackend, build_backend
from .encryption import EncryptionService
from .exceptions import StoreError, StoreUnavailable
from .lockout import LockoutStatus, LockoutTracker
from .pin import PinCredentialManager
from .secret_store import SecretCategory, SecretStore, utcnow

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable failure kinds for verification and retrieval."""
    INVALID_PIN_FORMAT = "invalid_pin_format"
    NO_PIN_SET = "no_pin_set"
    WRONG_PIN = "wrong_pin"
    LOCKED = "locked"
    SECRET_NOT_FOUND = "secret_not_found"
    STORE_UNAVAILABLE = "store_unavailable"
    STORE_ERROR = "store_error"


@dataclass
class VerifyResult:
    """Outcome of verify_pin()."""

    valid: bool
    locked: bool = False
    attempts_left: Optional[int] = None
    unlock_time: Optional[datetime] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None


@dataclass
class SecretResult:
    """Outcome of get_secret_with_pin()."""

    success: bool
    value: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    locked: Optional[bool] = None
    attempts_left: Optional[int] = None
    unlock_time: Optional[datetime] = None

    @classmethod
    def from_verify(cls, result: VerifyResult) -> "SecretResult":
        """Carry a failed verification through unchanged."""
        return cls(
            success=False,
            error=result.error,
            error_code=result.error_code,
            locked=result.locked,
            attempts_left=result.attempts_left,
            unlock_time=result.unlock_time,
        )


def _store_error_code(error: StoreError) -> ErrorCode:
    if isinstance(error, StoreUnavailable):
        return ErrorCode.STORE_UNAVAILABLE
    return ErrorCode.STORE_ERROR


def format_unlock_time(unlock_time: datetime, now: datetime) -> str:
    """Human-readable unlock time, e.g. "14:05 UTC (12 minutes)"."""
    seconds = max((unlock_time - now).total_seconds(), 0)
    minutes = max(math.ceil(seconds / 60), 1)
    unit = "minute" if minutes == 1 else "minutes"
    return f"{unlock_time:%H:%M} UTC ({minutes} {unit})"


class AccessController:
    """Gates secret retrieval behind PIN verification and lockout.

    Args:
        store: Secret store adapter.
        pins: PIN credential manager.
        lockout: Lockout tracker.
        clock: Returns the current UTC time (injectable for tests).
        audit_logger: Audit log sink (defaults to the global logger).
    """

    def __init__(
        self,
        store: SecretStore,
        pins: PinCredentialManager,
        lockout: LockoutTracker,
        clock: Callable[[], datetime] = utcnow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.pins = pins
        self.lockout = lockout
        self.clock = clock
        self._audit = audit_logger

    @classmethod
    def from_backend(
        cls,
        backend: SecretBackend,
        max_attempts: int = 3,
        lockout_duration: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "AccessController":
        """Wire store, lockout tracker and PIN manager around one backend."""
        store = SecretStore(backend, clock=clock, audit_logger=audit_logger)
        lockout = LockoutTracker(
            store,
            max_attempts=max_attempts,
            lockout_duration=lockout_duration,
            clock=clock,
            audit_logger=audit_logger,
        )
        pins = PinCredentialManager(store, lockout, audit_logger=audit_logger)
        return cls(store, pins, lockout, clock=clock, audit_logger=audit_logger)

    @classmethod
    def from_settings(cls, settings: VaultSettings, **kwargs) -> "AccessController":
        """Build the backend named in settings and wire everything to it."""
        return cls.from_backend(
            build_backend(settings),
            max_attempts=settings.max_pin_attempts,
            lockout_duration=timedelta(minutes=settings.lockout_minutes),
            **kwargs,
        )

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    # ------------------------------------------------------------------
    # PIN management passthroughs
    # ------------------------------------------------------------------

    def set_pin(self, user_id: str, pin: str) -> None:
        """See PinCredentialManager.set_pin()."""
        self.pins.set_pin(user_id, pin)

    def has_pin(self, user_id: str) -> bool:
        return self.pins.has_pin(user_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _locked_result(self, status: LockoutStatus, prefix: str) -> VerifyResult:
        when = format_unlock_time(status.unlock_time, self.clock())
        return VerifyResult(
            valid=False,
            locked=True,
            attempts_left=0,
            unlock_time=status.unlock_time,
            error=f"{prefix}Too many failed attempts. PIN entry is locked until {when}.",
            error_code=ErrorCode.LOCKED,
        )

    def verify_pin(self, user_id: str, pin: str) -> VerifyResult:
        """Verify a PIN, enforcing the lockout policy."""
        try:
            return self._verify_pin(user_id, pin)
        except StoreError as e:
            logger.error("PIN verification aborted by store failure: %s", e)
            return VerifyResult(
                valid=False,
                error="Secure storage is unavailable. Please try again later.",
                error_code=_store_error_code(e),
            )

    def _verify_pin(self, user_id: str, pin: str) -> VerifyResult:
        status = self.lockout.get_status(user_id)
        if status.locked:
            self.audit.log_pin_event(
                EventType.PIN_LOCKED_ATTEMPT,
                user_id,
                "Attempt rejected during lockout",
                severity=EventSeverity.ALERT,
            )
            return self._locked_result(status, prefix="")

        if not EncryptionService.is_valid_pin(pin):
            return VerifyResult(
                valid=False,
                attempts_left=status.attempts_left,
                error="PIN must be 4-6 digits",
                error_code=ErrorCode.INVALID_PIN_FORMAT,
            )

        record = self.pins.get_record(user_id)
        if record is None:
            return VerifyResult(
                valid=False,
                attempts_left=status.attempts_left,
                error="No PIN set. Please set a PIN first.",
                error_code=ErrorCode.NO_PIN_SET,
            )

        if self.pins.matches(pin, record):
            self.lockout.clear(user_id)
            self.audit.log_pin_event(EventType.PIN_VERIFIED, user_id, "PIN verified")
            return VerifyResult(valid=True, attempts_left=self.lockout.max_attempts)

        status = self.lockout.record_failure(user_id)
        self.audit.log_pin_event(
            EventType.PIN_FAILED,
            user_id,
            "Incorrect PIN",
            severity=EventSeverity.INVESTIGATE,
            details={"attempts_left": status.attempts_left},
        )
        if status.locked:
            return self._locked_result(status, prefix="Incorrect PIN. ")

        unit = "attempt" if status.attempts_left == 1 else "attempts"
        return VerifyResult(
            valid=False,
            attempts_left=status.attempts_left,
            error=f"Incorrect PIN. {status.attempts_left} {unit} remaining.",
            error_code=ErrorCode.WRONG_PIN,
        )

    # ------------------------------------------------------------------
    # PIN-gated retrieval
    # ------------------------------------------------------------------

    def get_secret_with_pin(
        self,
        user_id: str,
        pin: str,
        category: Union[SecretCategory, str],
        key: str,
    ) -> SecretResult:
        """Verify the PIN, then return the unmasked secret value.

        Raises:
            ValueError: category is not a user-facing SecretCategory.
        """
        category = SecretCategory(category)

        verification = self.verify_pin(user_id, pin)
        if not verification.valid:
            return SecretResult.from_verify(verification)

        try:
            value = self.store.get(user_id, category, key)
        except StoreError as e:
            return SecretResult(
                success=False,
                error="Secure storage is unavailable. Please try again later.",
                error_code=_store_error_code(e),
            )

        if value is None:
            return SecretResult(
                success=False,
                error="Secret not found",
                error_code=ErrorCode.SECRET_NOT_FOUND,
            )

        self.audit.log_secret_event(EventType.SECRET_ACCESSED, user_id, category.value, key)
        return SecretResult(success=True, value=value)
