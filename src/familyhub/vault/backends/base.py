# Vault - Abstract Secret Backend
#
# Defines the SecretBackend abstract base class that every storage
# implementation (in-memory, local SQLite, managed Key Vault) must
# implement. No storage happens here; this is the contract only.
#
# Contract:
#   - get() returns None only for a confirmed missing secret
#   - every other failure raises StoreError / StoreUnavailable
#   - delete() never fails because the secret is already gone

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Managed vaults cap secret names at 127 characters.
MAX_NAME_LENGTH = 127


@dataclass
class SecretProperties:
    """Secret metadata as returned by enumeration (no value)."""

    name: str
    tags: Dict[str, str] = field(default_factory=dict)
    version: Optional[str] = None


@dataclass
class StoredSecret:
    """A secret value with its tags and current version."""

    name: str
    value: str
    tags: Dict[str, str] = field(default_factory=dict)
    version: Optional[str] = None


def matches_tags(tags: Dict[str, str], tag_filter: Optional[Dict[str, str]]) -> bool:
    """True if every key/value in tag_filter is present in tags."""
    if not tag_filter:
        return True
    return all(tags.get(k) == v for k, v in tag_filter.items())


class SecretBackend(ABC):
    """Abstract base class for secret storage backends.

    Backends that can perform an atomic versioned write set
    ``supports_cas = True`` and implement ``compare_and_set()``.
    """

    name = "base"
    supports_cas = False
    max_name_length = MAX_NAME_LENGTH

    @abstractmethod
    def set(self, name: str, value: str, tags: Optional[Dict[str, str]] = None) -> StoredSecret:
        """Create or overwrite a secret. Returns the stored entry."""

    @abstractmethod
    def get(self, name: str) -> Optional[StoredSecret]:
        """Return the secret, or None if it does not exist."""

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Delete a secret. Returns False if it was already absent."""

    @abstractmethod
    def list_properties(self, tag_filter: Optional[Dict[str, str]] = None) -> List[SecretProperties]:
        """Enumerate secret metadata, optionally filtered by tags."""

    def compare_and_set(
        self,
        name: str,
        value: str,
        tags: Optional[Dict[str, str]],
        expected_version: Optional[str],
    ) -> StoredSecret:
        """Write only if the current version equals ``expected_version``.

        ``expected_version=None`` means the secret must not exist yet.

        Raises:
            VersionConflict: Another writer got there first.
            NotImplementedError: Backend has no atomic conditional write.
        """
        raise NotImplementedError(f"{self.name} backend does not support compare-and-set")

    def close(self) -> None:
        """Release any held resources."""
