"""
Tests for PinCredentialManager and PIN hashing.

Covers:
- 4-6 digit format enforcement (nothing written on rejection)
- Hash + salt stored, never the PIN
- Fresh salt on every set
- Setting a PIN clears an active lockout
"""

import pytest

from familyhub.vault import (
    EncryptionService,
    InvalidPinFormat,
    PinRecord,
    hash_pin,
)
from familyhub.vault.pin import PIN_KEY
from familyhub.vault.secret_store import SYSTEM_CATEGORY, secret_name

USER = "alice@example.com"


class TestPinFormat:
    @pytest.mark.parametrize("pin", ["1234", "00000", "987654", "0000"])
    def test_valid_pins_accepted(self, controller, pin):
        controller.set_pin(USER, pin)
        assert controller.has_pin(USER) is True

    @pytest.mark.parametrize("pin", [
        "", "123", "1234567", "12a4", "12 34", "-1234", "１２３４", "1234\n", None, 1234,
    ])
    def test_invalid_pins_rejected(self, controller, backend, pin):
        with pytest.raises(InvalidPinFormat):
            controller.set_pin(USER, pin)
        assert controller.has_pin(USER) is False
        assert len(backend) == 0

    def test_invalid_pin_does_not_change_existing(self, controller):
        controller.set_pin(USER, "1234")
        before = controller.pins.get_record(USER)

        with pytest.raises(InvalidPinFormat):
            controller.set_pin(USER, "12")

        assert controller.pins.get_record(USER) == before


class TestPinStorage:
    def test_plaintext_pin_not_stored(self, controller, backend):
        controller.set_pin(USER, "482916")
        stored = backend.get(secret_name(USER, SYSTEM_CATEGORY, PIN_KEY))
        assert "482916" not in stored.value

    def test_record_shape(self, controller):
        controller.set_pin(USER, "1234")
        record = controller.pins.get_record(USER)
        assert len(record.salt) == EncryptionService.SALT_LENGTH
        assert len(record.hash) == EncryptionService.PIN_HASH_LENGTH
        assert record.hash == hash_pin("1234", record.salt)

    def test_fresh_salt_per_set(self, controller):
        controller.set_pin(USER, "1234")
        first = controller.pins.get_record(USER)
        controller.set_pin(USER, "1234")
        second = controller.pins.get_record(USER)
        assert first.salt != second.salt
        assert first.hash != second.hash

    def test_has_pin_false_when_absent(self, controller):
        assert controller.has_pin("nobody@example.com") is False

    def test_record_json_round_trip(self):
        record = PinRecord(hash=b"\x01" * 64, salt=b"\x02" * 32)
        assert PinRecord.from_json(record.to_json()) == record


class TestHashing:
    def test_hash_is_deterministic_for_salt(self):
        salt = EncryptionService.generate_salt()
        assert hash_pin("1234", salt) == hash_pin("1234", salt)

    def test_different_pins_differ(self):
        salt = EncryptionService.generate_salt()
        assert hash_pin("1234", salt) != hash_pin("1235", salt)

    def test_matches(self, controller):
        controller.set_pin(USER, "1234")
        record = controller.pins.get_record(USER)
        assert controller.pins.matches("1234", record) is True
        assert controller.pins.matches("4321", record) is False


class TestPinResetsLockout:
    def test_set_pin_clears_lockout(self, controller):
        controller.set_pin(USER, "1234")
        for _ in range(3):
            controller.verify_pin(USER, "0000")
        assert controller.lockout.get_status(USER).locked is True

        controller.set_pin(USER, "5678")

        status = controller.lockout.get_status(USER)
        assert status.locked is False
        assert status.attempts_left == 3
        assert controller.verify_pin(USER, "5678").valid is True
