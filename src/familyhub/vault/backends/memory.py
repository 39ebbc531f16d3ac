"""In-process secret backend.

Keeps secrets in a dict guarded by a lock. Used by the test suite and
for local development without a vault.
"""

import threading
from typing import Dict, List, Optional

from ..exceptions import VersionConflict
from .base import SecretBackend, SecretProperties, StoredSecret, matches_tags


class MemoryBackend(SecretBackend):
    """Dict-backed secret store with versioned compare-and-set."""

    name = "memory"
    supports_cas = True

    def __init__(self):
        self._secrets: Dict[str, StoredSecret] = {}
        # Last version issued per name; kept after delete so versions never repeat
        self._versions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _write(self, name: str, value: str, tags: Optional[Dict[str, str]]) -> StoredSecret:
        version = self._versions.get(name, 0) + 1
        self._versions[name] = version
        entry = StoredSecret(name=name, value=value, tags=dict(tags or {}), version=str(version))
        self._secrets[name] = entry
        return StoredSecret(name=name, value=value, tags=dict(entry.tags), version=entry.version)

    def set(self, name: str, value: str, tags: Optional[Dict[str, str]] = None) -> StoredSecret:
        with self._lock:
            return self._write(name, value, tags)

    def get(self, name: str) -> Optional[StoredSecret]:
        with self._lock:
            entry = self._secrets.get(name)
            if entry is None:
                return None
            return StoredSecret(name=entry.name, value=entry.value, tags=dict(entry.tags), version=entry.version)

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._secrets.pop(name, None) is not None

    def list_properties(self, tag_filter: Optional[Dict[str, str]] = None) -> List[SecretProperties]:
        with self._lock:
            return [
                SecretProperties(name=e.name, tags=dict(e.tags), version=e.version)
                for e in self._secrets.values()
                if matches_tags(e.tags, tag_filter)
            ]

    def compare_and_set(
        self,
        name: str,
        value: str,
        tags: Optional[Dict[str, str]],
        expected_version: Optional[str],
    ) -> StoredSecret:
        with self._lock:
            current = self._secrets.get(name)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise VersionConflict(name, expected_version)
            return self._write(name, value, tags)

    def __len__(self) -> int:
        return len(self._secrets)
