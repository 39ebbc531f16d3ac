# Vault - PIN Lockout Tracker
#
# Enforces at most N consecutive wrong PINs (default 3) before a fixed
# lockout (default 15 minutes). State lives in the secret store as a
# JSON record under (user_id, "system", "pin-lockout"):
#
#   {"failedAttempts": 2, "lockedUntil": null}
#   {"failedAttempts": 3, "lockedUntil": "2026-01-01T12:15:00+00:00"}
#
# States per user:
#   Clean  - no record, or failedAttempts < N and no lockedUntil
#            (a reset record is {"failedAttempts": 0, "lockedUntil": null})
#   Locked - lockedUntil set and now < lockedUntil
#
# Clean -> Locked the instant failedAttempts reaches N.
# Locked -> Clean is detected lazily by get_status() once now >= lockedUntil;
# the record is reset and a fresh budget of N granted.
#
# Records are reset in place, never deleted: a managed vault soft-deletes,
# and a soft-deleted name rejects writes until it is purged.
#
# Two concurrent wrong PINs can race on the counter. On backends with
# compare-and-set the increment is an optimistic versioned write, retried
# on conflict. Backends without it fall back to read-modify-write, which
# can under-count under a simultaneous burst.

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from .exceptions import StoreError, VersionConflict
from .secret_store import SYSTEM_CATEGORY, SecretStore, utcnow

logger = logging.getLogger(__name__)

LOCKOUT_KEY = "pin-lockout"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=15)
MAX_CAS_RETRIES = 8


@dataclass
class LockoutRecord:
    """Persisted failed-attempt counter for one user."""

    failed_attempts: int = 0
    locked_until: Optional[datetime] = None

    def to_json(self) -> str:
        return json.dumps({
            "failedAttempts": self.failed_attempts,
            "lockedUntil": self.locked_until.isoformat() if self.locked_until else None,
        })

    @classmethod
    def from_json(cls, raw: str) -> "LockoutRecord":
        data = json.loads(raw)
        locked_until = data.get("lockedUntil")
        return cls(
            failed_attempts=int(data.get("failedAttempts", 0)),
            locked_until=datetime.fromisoformat(locked_until) if locked_until else None,
        )


@dataclass
class LockoutStatus:
    """Result of a status check or a recorded failure."""

    locked: bool
    attempts_left: int
    unlock_time: Optional[datetime] = None


class LockoutTracker:
    """Tracks consecutive PIN failures and timed lockouts per user.

    Args:
        store: Secret store holding the lockout records.
        max_attempts: Wrong PINs allowed before lockout.
        lockout_duration: How long a lockout lasts.
        clock: Returns the current UTC time (injectable for tests).
        audit_logger: Audit log sink (defaults to the global logger).
    """

    def __init__(
        self,
        store: SecretStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION,
        clock: Callable[[], datetime] = utcnow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self.clock = clock
        self._audit = audit_logger

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    def _read(self, user_id: str) -> Tuple[Optional[LockoutRecord], Optional[str]]:
        """Load the record and its version (None, None when absent)."""
        stored = self.store.get_record(user_id, SYSTEM_CATEGORY, LOCKOUT_KEY)
        if stored is None:
            return None, None
        try:
            return LockoutRecord.from_json(stored.value), stored.version
        except (ValueError, TypeError, AttributeError) as e:
            raise StoreError(f"Corrupted lockout record: {e}") from e

    def _status_for(self, record: LockoutRecord) -> LockoutStatus:
        if record.locked_until is not None:
            return LockoutStatus(locked=True, attempts_left=0, unlock_time=record.locked_until)
        return LockoutStatus(
            locked=False,
            attempts_left=max(self.max_attempts - record.failed_attempts, 0),
        )

    def get_status(self, user_id: str) -> LockoutStatus:
        """Current lockout state; clears an expired lockout as a side effect."""
        record, _ = self._read(user_id)
        if record is None:
            return LockoutStatus(locked=False, attempts_left=self.max_attempts)

        if record.locked_until is not None and self.clock() >= record.locked_until:
            self.clear(user_id)
            self.audit.log_pin_event(
                EventType.PIN_LOCKOUT_EXPIRED,
                user_id,
                "Lockout expired, attempt budget restored",
            )
            return LockoutStatus(locked=False, attempts_left=self.max_attempts)

        return self._status_for(record)

    def record_failure(self, user_id: str) -> LockoutStatus:
        """Count one wrong PIN; locks the user when the budget hits zero.

        Never increments while a lockout is active.

        Raises:
            StoreError: Backend failure, or persistent write contention.
        """
        for _ in range(MAX_CAS_RETRIES):
            record, version = self._read(user_id)
            now = self.clock()

            if record is not None and record.locked_until is not None:
                if now < record.locked_until:
                    return self._status_for(record)
                # Expired lockout: start a fresh budget
                failed = 0
            else:
                failed = record.failed_attempts if record else 0

            failed += 1
            locked_until = now + self.lockout_duration if failed >= self.max_attempts else None
            updated = LockoutRecord(failed_attempts=failed, locked_until=locked_until)

            if self.store.supports_cas:
                try:
                    self.store.compare_and_set(
                        user_id, SYSTEM_CATEGORY, LOCKOUT_KEY, updated.to_json(), version
                    )
                except VersionConflict:
                    logger.debug("Lockout record changed concurrently, retrying")
                    continue
            else:
                self.store.save(user_id, SYSTEM_CATEGORY, LOCKOUT_KEY, updated.to_json())

            if locked_until is not None:
                self.audit.log_pin_event(
                    EventType.PIN_LOCKOUT,
                    user_id,
                    f"Locked out after {failed} failed attempts",
                    severity=EventSeverity.ALERT,
                    details={"unlock_time": locked_until.isoformat()},
                )
            return self._status_for(updated)

        raise StoreError(
            f"Could not record failed PIN attempt after {MAX_CAS_RETRIES} concurrent retries"
        )

    def clear(self, user_id: str) -> None:
        """Reset the counter (no-op if absent or already clean).

        A corrupted record is overwritten with a clean one.
        """
        stored = self.store.get_record(user_id, SYSTEM_CATEGORY, LOCKOUT_KEY)
        if stored is None:
            return
        try:
            if LockoutRecord.from_json(stored.value) == LockoutRecord():
                return
        except (ValueError, TypeError, AttributeError):
            logger.warning("Overwriting corrupted lockout record")
        self.store.save(user_id, SYSTEM_CATEGORY, LOCKOUT_KEY, LockoutRecord().to_json())
