# Vault - Secret Store Adapter
#
# Maps (user_id, category, key) onto a single namespaced secret name in
# the configured backend and performs get/set/delete against it.
#
# Name derivation: "{user_id}-{category}-{key}", lowercased, anything
# outside [a-z0-9-] replaced with "-", truncated to the backend's name
# limit. Keep keys short: two triples that only differ past the limit
# land on the same name.
#
# Tags on every secret: userId (base64), category, key, createdAt.

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from ..core.audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    obfuscate_user_id,
)
from .backends.base import MAX_NAME_LENGTH, SecretBackend, StoredSecret
from .exceptions import StoreError
from .masking import mask_value

logger = logging.getLogger(__name__)


class SecretCategory(str, Enum):
    """Closed set of user-facing secret categories."""
    FINANCIAL = "financial"
    IDENTITY = "identity"
    MEDICAL = "medical"

    @classmethod
    def values(cls) -> List[str]:
        return [c.value for c in cls]


# Internal category for PIN and lockout records. Never accepted from API
# callers and never included in masked listings.
SYSTEM_CATEGORY = "system"

_ALLOWED_CATEGORIES = frozenset(SecretCategory.values() + [SYSTEM_CATEGORY])
_NAME_INVALID_CHARS = re.compile(r"[^a-z0-9-]")

# Tags set by the store itself; caller metadata cannot override them.
RESERVED_TAGS = ("userId", "category", "key", "createdAt")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def secret_name(user_id: str, category: str, key: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Derive the backend secret name for a (user, category, key) triple."""
    raw = f"{user_id}-{category}-{key}".lower()
    return _NAME_INVALID_CHARS.sub("-", raw)[:max_length]


def _category_value(category: Union[SecretCategory, str]) -> str:
    value = category.value if isinstance(category, SecretCategory) else str(category)
    if value not in _ALLOWED_CATEGORIES:
        raise ValueError(
            f"Invalid category {value!r}. Must be one of: {', '.join(SecretCategory.values())}"
        )
    return value


@dataclass
class MaskedSecret:
    """A stored secret as it may be shown without PIN verification."""

    category: str
    key: str
    masked_value: str
    created_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "key": self.key,
            "maskedValue": self.masked_value,
            "createdAt": self.created_at,
        }


class SecretStore:
    """Per-user namespaced access to a secret backend.

    Args:
        backend: Storage backend (injected; no global client).
        clock: Returns the current UTC time, for createdAt tags.
        audit_logger: Audit log sink (defaults to the global logger).
    """

    def __init__(
        self,
        backend: SecretBackend,
        clock: Callable[[], datetime] = utcnow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.backend = backend
        self.clock = clock
        self._audit = audit_logger

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    @property
    def supports_cas(self) -> bool:
        return self.backend.supports_cas

    def name_for(self, user_id: str, category: Union[SecretCategory, str], key: str) -> str:
        return secret_name(user_id, _category_value(category), key, self.backend.max_name_length)

    def _build_tags(self, user_id: str, category: str, key: str, metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
        tags = {str(k): str(v) for k, v in (metadata or {}).items() if k not in RESERVED_TAGS}
        tags.update({
            "userId": obfuscate_user_id(user_id),
            "category": category,
            "key": key,
            "createdAt": self.clock().isoformat(),
        })
        return tags

    def _store_failure(self, action: str, user_id: str, error: StoreError):
        logger.error("Vault %s failed via %s backend: %s", action, self.backend.name, error)
        self.audit.log_event(
            event_type=EventType.STORE_ERROR,
            severity=EventSeverity.CRITICAL,
            message=f"Vault {action} failed: {type(error).__name__}",
            details={"backend": self.backend.name},
            user_id=user_id,
        )

    def save(
        self,
        user_id: str,
        category: Union[SecretCategory, str],
        key: str,
        value: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """Create or overwrite a secret.

        Raises:
            StoreUnavailable: Backend unreachable or misconfigured.
            StoreError: Any other backend failure.
        """
        category = _category_value(category)
        name = self.name_for(user_id, category, key)
        try:
            self.backend.set(name, value, self._build_tags(user_id, category, key, metadata))
        except StoreError as e:
            self._store_failure("save", user_id, e)
            raise

        if category != SYSTEM_CATEGORY:
            self.audit.log_secret_event(EventType.SECRET_SAVED, user_id, category, key)

    def get(self, user_id: str, category: Union[SecretCategory, str], key: str) -> Optional[str]:
        """Return the secret value, or None if it does not exist.

        Raises:
            StoreError: Backend failure (never reported as None).
        """
        record = self.get_record(user_id, category, key)
        return record.value if record is not None else None

    def get_record(self, user_id: str, category: Union[SecretCategory, str], key: str) -> Optional[StoredSecret]:
        """Return the stored entry (value, tags, version) or None."""
        name = self.name_for(user_id, category, key)
        try:
            return self.backend.get(name)
        except StoreError as e:
            self._store_failure("get", user_id, e)
            raise

    def delete(self, user_id: str, category: Union[SecretCategory, str], key: str) -> None:
        """Delete a secret. Already-absent secrets are not an error."""
        category = _category_value(category)
        name = self.name_for(user_id, category, key)
        try:
            existed = self.backend.delete(name)
        except StoreError as e:
            self._store_failure("delete", user_id, e)
            raise

        if existed and category != SYSTEM_CATEGORY:
            self.audit.log_secret_event(EventType.SECRET_DELETED, user_id, category, key)

    def compare_and_set(
        self,
        user_id: str,
        category: Union[SecretCategory, str],
        key: str,
        value: str,
        expected_version: Optional[str],
        metadata: Optional[Dict[str, str]] = None,
    ) -> StoredSecret:
        """Versioned write; see SecretBackend.compare_and_set()."""
        category = _category_value(category)
        name = self.name_for(user_id, category, key)
        return self.backend.compare_and_set(
            name, value, self._build_tags(user_id, category, key, metadata), expected_version
        )

    def list_masked(self, user_id: str) -> List[MaskedSecret]:
        """List a user's secrets with masked values only.

        Raises:
            StoreError: Backend failure.
        """
        try:
            properties = self.backend.list_properties({"userId": obfuscate_user_id(user_id)})
            secrets = []
            for prop in properties:
                category = prop.tags.get("category", "")
                key = prop.tags.get("key", "")
                if category not in SecretCategory.values() or not key:
                    continue
                record = self.backend.get(prop.name)
                if record is None:
                    # Deleted between listing and read
                    continue
                secrets.append(MaskedSecret(
                    category=category,
                    key=key,
                    masked_value=mask_value(key, record.value),
                    created_at=prop.tags.get("createdAt", ""),
                ))
        except StoreError as e:
            self._store_failure("list", user_id, e)
            raise

        self.audit.log_event(
            event_type=EventType.SECRET_LISTED,
            severity=EventSeverity.INFO,
            message=f"Secret: listed {len(secrets)} masked secrets",
            user_id=user_id,
        )
        return sorted(secrets, key=lambda s: (s.category, s.key))
