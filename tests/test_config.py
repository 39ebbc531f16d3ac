"""
Tests for VaultSettings, the CLI entry point and audit hooks.
"""

from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from familyhub.__main__ import main
from familyhub.core import EventType, obfuscate_user_id
from familyhub.core.config import VaultSettings
from familyhub.vault import AccessController, EncryptionService, MemoryBackend


class TestVaultSettings:
    def test_defaults(self):
        settings = VaultSettings()
        assert settings.backend == "memory"
        assert settings.max_pin_attempts == 3
        assert settings.lockout_minutes == 15

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FAMILYHUB_VAULT_BACKEND", "SQLite")
        monkeypatch.setenv("FAMILYHUB_VAULT_PATH", "/tmp/v.db")
        monkeypatch.setenv("FAMILYHUB_PIN_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("FAMILYHUB_PIN_LOCKOUT_MINUTES", "30")
        monkeypatch.setenv("AZURE_KEY_VAULT_URL", "https://v.test")

        settings = VaultSettings.from_env(load_env_file=False)

        assert settings.backend == "sqlite"
        assert settings.vault_path == Path("/tmp/v.db")
        assert settings.max_pin_attempts == 5
        assert settings.lockout_minutes == 30
        assert settings.keyvault_url == "https://v.test"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("FAMILYHUB_PIN_MAX_ATTEMPTS", "5")
        settings = VaultSettings.from_env(load_env_file=False, max_pin_attempts=7)
        assert settings.max_pin_attempts == 7

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            VaultSettings(backend="redis")

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("FAMILYHUB_PIN_MAX_ATTEMPTS", "three")
        with pytest.raises(ValueError):
            VaultSettings.from_env(load_env_file=False)

    @pytest.mark.parametrize("field", ["max_pin_attempts", "lockout_minutes"])
    def test_policy_must_be_positive(self, field):
        with pytest.raises(ValueError):
            VaultSettings(**{field: 0})


class TestMain:
    def test_generate_key(self, capsys):
        assert main(["--generate-key"]) == 0
        key = EncryptionService.decode_from_storage(capsys.readouterr().out.strip())
        assert len(key) == EncryptionService.KEY_LENGTH

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "FamilyHub Vault" in capsys.readouterr().out


class TestAuditTrail:
    USER = "alice@example.com"

    @pytest.fixture
    def audit(self):
        return MagicMock()

    @pytest.fixture
    def audited(self, audit, clock):
        controller = AccessController.from_backend(
            MemoryBackend(), lockout_duration=timedelta(minutes=15), clock=clock, audit_logger=audit
        )
        controller.set_pin(self.USER, "1234")
        return controller

    def _event_types(self, audit):
        types = [c.args[0] for c in audit.log_pin_event.call_args_list]
        types += [c.kwargs.get("event_type") for c in audit.log_event.call_args_list]
        types += [c.args[0] for c in audit.log_secret_event.call_args_list]
        return types

    def test_pin_events(self, audited, audit):
        audited.verify_pin(self.USER, "1234")
        for _ in range(3):
            audited.verify_pin(self.USER, "0000")
        audited.verify_pin(self.USER, "1234")

        types = self._event_types(audit)
        assert EventType.PIN_SET in types
        assert EventType.PIN_VERIFIED in types
        assert EventType.PIN_FAILED in types
        assert EventType.PIN_LOCKOUT in types
        assert EventType.PIN_LOCKED_ATTEMPT in types

    def test_values_never_logged(self, audited, audit):
        audited.store.save(self.USER, "identity", "ssn", "123-45-6789")
        audited.get_secret_with_pin(self.USER, "1234", "identity", "ssn")

        assert EventType.SECRET_ACCESSED in self._event_types(audit)
        logged = repr(audit.mock_calls)
        assert "123-45-6789" not in logged
        assert "'1234'" not in logged

    def test_obfuscated_user_id(self):
        assert obfuscate_user_id(self.USER) == "YWxpY2VAZXhhbXBsZS5jb20="
