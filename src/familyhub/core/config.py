# Core Module - Configuration
#
# Settings are read from the environment, with a .env file loaded first
# for local development (python-dotenv). Explicit keyword arguments
# override the environment, so tests can build settings directly.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BACKEND_MEMORY = "memory"
BACKEND_SQLITE = "sqlite"
BACKEND_KEYVAULT = "keyvault"

VALID_BACKENDS = (BACKEND_MEMORY, BACKEND_SQLITE, BACKEND_KEYVAULT)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class VaultSettings:
    """Vault configuration.

    Attributes:
        backend: Storage backend ("memory", "sqlite" or "keyvault").
        vault_path: SQLite file for the local backend.
        vault_key: Base64 32-byte AES key sealing values in the SQLite backend.
        keyvault_url: Base URL of the managed Key Vault.
        keyvault_token: Bearer token for the Key Vault REST API.
        request_timeout: Timeout in seconds for remote vault calls.
        max_pin_attempts: Consecutive wrong PINs before lockout.
        lockout_minutes: Lockout duration.
        session_token: Fixed API session token (random per start if unset).
        audit_log_dir: Directory for audit log files.
    """

    backend: str = BACKEND_MEMORY
    vault_path: Path = field(default_factory=lambda: Path("data/vault.db"))
    vault_key: Optional[str] = None
    keyvault_url: Optional[str] = None
    keyvault_token: Optional[str] = None
    request_timeout: float = 10.0
    max_pin_attempts: int = 3
    lockout_minutes: int = 15
    session_token: Optional[str] = None
    audit_log_dir: Path = field(default_factory=lambda: Path("./audit_logs"))

    def __post_init__(self):
        self.backend = self.backend.strip().lower()
        if self.backend not in VALID_BACKENDS:
            raise ValueError(
                f"Unknown vault backend {self.backend!r}. "
                f"Must be one of: {', '.join(VALID_BACKENDS)}"
            )
        if self.max_pin_attempts < 1:
            raise ValueError("max_pin_attempts must be at least 1")
        if self.lockout_minutes < 1:
            raise ValueError("lockout_minutes must be at least 1")
        self.vault_path = Path(self.vault_path)
        self.audit_log_dir = Path(self.audit_log_dir)

    @classmethod
    def from_env(cls, load_env_file: bool = True, **overrides) -> "VaultSettings":
        """Build settings from environment variables.

        Args:
            load_env_file: Load .env from the working directory first.
            **overrides: Explicit values that win over the environment.
        """
        if load_env_file:
            load_dotenv()

        values = {
            "backend": os.environ.get("FAMILYHUB_VAULT_BACKEND", BACKEND_MEMORY),
            "vault_path": Path(os.environ.get("FAMILYHUB_VAULT_PATH", "data/vault.db")),
            "vault_key": os.environ.get("FAMILYHUB_VAULT_KEY") or None,
            "keyvault_url": os.environ.get("AZURE_KEY_VAULT_URL") or None,
            "keyvault_token": os.environ.get("AZURE_KEY_VAULT_TOKEN") or None,
            "request_timeout": _env_float("FAMILYHUB_VAULT_TIMEOUT", 10.0),
            "max_pin_attempts": _env_int("FAMILYHUB_PIN_MAX_ATTEMPTS", 3),
            "lockout_minutes": _env_int("FAMILYHUB_PIN_LOCKOUT_MINUTES", 15),
            "session_token": os.environ.get("FAMILYHUB_SESSION_TOKEN") or None,
            "audit_log_dir": Path(os.environ.get("FAMILYHUB_AUDIT_LOG_DIR", "./audit_logs")),
        }
        values.update(overrides)
        return cls(**values)


_settings: Optional[VaultSettings] = None


def get_settings() -> VaultSettings:
    """Get global settings (loaded once from the environment)."""
    global _settings
    if _settings is None:
        _settings = VaultSettings.from_env()
    return _settings


def set_settings(settings: Optional[VaultSettings]) -> None:
    """Replace the global settings. Passing None forces a reload."""
    global _settings
    _settings = settings
