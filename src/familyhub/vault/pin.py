# Vault - PIN Credential Manager
#
# Sets and checks the 4-6 digit PIN that gates unmasked secret retrieval.
# The PIN itself is never stored: only a PBKDF2-SHA512 hash and the
# random salt used for it, under (user_id, "system", "pin").
#
# Setting a PIN also clears any lockout: a fresh PIN means fresh trust.

import json
import logging
from dataclasses import dataclass
from typing import Optional

from ..core.audit_log import AuditLogger, EventType, get_audit_logger
from .encryption import EncryptionService
from .exceptions import InvalidPinFormat, StoreError
from .lockout import LockoutTracker
from .secret_store import SYSTEM_CATEGORY, SecretStore

logger = logging.getLogger(__name__)

PIN_KEY = "pin"


@dataclass
class PinRecord:
    """Stored PIN credential: hash and salt, never the PIN."""

    hash: bytes
    salt: bytes

    def to_json(self) -> str:
        return json.dumps({
            "hash": EncryptionService.encode_for_storage(self.hash),
            "salt": EncryptionService.encode_for_storage(self.salt),
        })

    @classmethod
    def from_json(cls, raw: str) -> "PinRecord":
        data = json.loads(raw)
        return cls(
            hash=EncryptionService.decode_from_storage(data["hash"]),
            salt=EncryptionService.decode_from_storage(data["salt"]),
        )


def hash_pin(pin: str, salt: bytes) -> bytes:
    """Derive the stored hash for a PIN and salt (pure function)."""
    return EncryptionService.hash_pin(pin, salt)


class PinCredentialManager:
    """Sets, reads and matches a user's PIN credential.

    Args:
        store: Secret store holding the PIN records.
        lockout: Lockout tracker to reset when a new PIN is set.
        audit_logger: Audit log sink (defaults to the global logger).
    """

    def __init__(
        self,
        store: SecretStore,
        lockout: LockoutTracker,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.lockout = lockout
        self._audit = audit_logger

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    def set_pin(self, user_id: str, pin: str) -> None:
        """Set or replace the user's PIN.

        Raises:
            InvalidPinFormat: pin is not 4-6 digits (nothing is written).
            StoreError: Backend failure.
        """
        if not EncryptionService.is_valid_pin(pin):
            raise InvalidPinFormat()

        salt = EncryptionService.generate_salt()
        record = PinRecord(hash=hash_pin(pin, salt), salt=salt)
        self.store.save(user_id, SYSTEM_CATEGORY, PIN_KEY, record.to_json())
        self.lockout.clear(user_id)

        self.audit.log_pin_event(EventType.PIN_SET, user_id, "PIN set")

    def get_record(self, user_id: str) -> Optional[PinRecord]:
        """Return the stored PIN credential, or None if no PIN is set."""
        raw = self.store.get(user_id, SYSTEM_CATEGORY, PIN_KEY)
        if raw is None:
            return None
        try:
            return PinRecord.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(f"Corrupted PIN record: {e}") from e

    def has_pin(self, user_id: str) -> bool:
        return self.get_record(user_id) is not None

    @staticmethod
    def matches(pin: str, record: PinRecord) -> bool:
        """Recompute the hash for pin and compare in constant time."""
        return EncryptionService.hashes_match(hash_pin(pin, record.salt), record.hash)
