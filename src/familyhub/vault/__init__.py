# Vault Module - PIN-Gated Secure Storage
#
# Per-user sensitive information (financial, identity, medical) stored in a
# pluggable secret backend. Values are shown masked everywhere except the
# PIN-verified retrieval path on AccessController.

from .access import AccessController, ErrorCode, SecretResult, VerifyResult
from .backends import (
    KeyVaultBackend,
    MemoryBackend,
    SecretBackend,
    SQLiteBackend,
    build_backend,
)
from .encryption import EncryptionService
from .exceptions import (
    InvalidPinFormat,
    StoreError,
    StoreUnavailable,
    VaultError,
    VersionConflict,
)
from .lockout import LockoutStatus, LockoutTracker
from .masking import mask_value
from .pin import PinCredentialManager, PinRecord, hash_pin
from .secret_store import MaskedSecret, SecretCategory, SecretStore, secret_name

__all__ = [
    "AccessController",
    "ErrorCode",
    "SecretResult",
    "VerifyResult",
    "SecretBackend",
    "MemoryBackend",
    "SQLiteBackend",
    "KeyVaultBackend",
    "build_backend",
    "EncryptionService",
    "VaultError",
    "StoreError",
    "StoreUnavailable",
    "VersionConflict",
    "InvalidPinFormat",
    "LockoutStatus",
    "LockoutTracker",
    "mask_value",
    "PinCredentialManager",
    "PinRecord",
    "hash_pin",
    "MaskedSecret",
    "SecretCategory",
    "SecretStore",
    "secret_name",
]
