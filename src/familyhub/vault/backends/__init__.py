# Vault - Secret Backends
#
# Storage implementations beneath the SecretStore adapter:
#   - MemoryBackend:   in-process, for tests and local development
#   - SQLiteBackend:   local file, AES-256-GCM sealed values
#   - KeyVaultBackend: managed Key Vault over its REST API

import binascii

from ...core.config import (
    BACKEND_KEYVAULT,
    BACKEND_MEMORY,
    BACKEND_SQLITE,
    VaultSettings,
)
from ..encryption import EncryptionService
from ..exceptions import StoreUnavailable
from .base import MAX_NAME_LENGTH, SecretBackend, SecretProperties, StoredSecret
from .keyvault import KeyVaultBackend
from .memory import MemoryBackend
from .sqlite import SQLiteBackend


def build_backend(settings: VaultSettings) -> SecretBackend:
    """Construct the backend selected by settings.

    Raises:
        StoreUnavailable: Required settings for the backend are missing.
    """
    if settings.backend == BACKEND_MEMORY:
        return MemoryBackend()

    if settings.backend == BACKEND_SQLITE:
        if not settings.vault_key:
            raise StoreUnavailable("FAMILYHUB_VAULT_KEY environment variable is not set")
        try:
            key = EncryptionService.decode_from_storage(settings.vault_key)
        except (binascii.Error, ValueError) as e:
            raise StoreUnavailable(f"FAMILYHUB_VAULT_KEY is not valid base64: {e}") from e
        return SQLiteBackend(settings.vault_path, key)

    if settings.backend == BACKEND_KEYVAULT:
        return KeyVaultBackend(
            settings.keyvault_url,
            token=settings.keyvault_token,
            timeout=settings.request_timeout,
        )

    raise StoreUnavailable(f"Unknown vault backend {settings.backend!r}")


__all__ = [
    "MAX_NAME_LENGTH",
    "SecretBackend",
    "SecretProperties",
    "StoredSecret",
    "MemoryBackend",
    "SQLiteBackend",
    "KeyVaultBackend",
    "build_backend",
]
