# Vault - Encryption Service
#
# PIN -> salted hash (PBKDF2-HMAC-SHA512)
# Secret sealing at rest for the local backend (AES-256-GCM)

import base64
import hmac
import os
import re
from typing import Tuple

from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.backends import default_backend

PIN_PATTERN = re.compile(r"[0-9]{4,6}")


class EncryptionService:
    """
    Hashing and encryption primitives for the vault.

    PIN flow:
    1. User sets a 4-6 digit PIN
    2. A fresh random salt is generated for every set
    3. PBKDF2-SHA512 derives a 64-byte hash from PIN + salt
    4. Only hash and salt are stored; verification recomputes and
       compares in constant time

    Local storage flow:
    - Each value is sealed with AES-256-GCM under the vault key
    - Each value gets a unique nonce
    """

    # PBKDF2 parameters for PIN hashing. A 4-6 digit PIN has at most 10^6
    # candidates, so the iteration count is what makes offline guessing slow.
    PIN_ITERATIONS = 100_000
    PIN_HASH_LENGTH = 64
    SALT_LENGTH = 32  # 256-bit salt

    KEY_LENGTH = 32  # 256 bits for AES-256
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)

    @staticmethod
    def is_valid_pin(pin) -> bool:
        """True if pin is a string of 4-6 decimal digits."""
        return isinstance(pin, str) and PIN_PATTERN.fullmatch(pin) is not None

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(EncryptionService.SALT_LENGTH)

    @staticmethod
    def hash_pin(pin: str, salt: bytes) -> bytes:
        """
        Derive the PIN hash using PBKDF2-HMAC-SHA512.

        Args:
            pin: The PIN digits
            salt: Per-PIN random salt

        Returns:
            64-byte hash
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=EncryptionService.PIN_HASH_LENGTH,
            salt=salt,
            iterations=EncryptionService.PIN_ITERATIONS,
            backend=default_backend()
        )

        return kdf.derive(pin.encode('utf-8'))

    @staticmethod
    def hashes_match(candidate: bytes, stored: bytes) -> bool:
        """Constant-time comparison of two hashes."""
        return hmac.compare_digest(candidate, stored)

    @staticmethod
    def generate_key() -> bytes:
        """Generate a random AES-256 key for the local backend."""
        return AESGCM.generate_key(bit_length=256)

    @staticmethod
    def encrypt(plaintext: str, key: bytes, associated_data: bytes = None) -> Tuple[bytes, bytes]:
        """
        Encrypt plaintext using AES-256-GCM.

        Args:
            plaintext: Secret value to encrypt
            key: 256-bit encryption key
            associated_data: Bound to the ciphertext (the secret name), so a
                             sealed value cannot be moved to another row

        Returns:
            Tuple of (nonce, ciphertext)
        """
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)

        aesgcm = AESGCM(key)
        ciphertext = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), associated_data)

        return nonce, ciphertext

    @staticmethod
    def decrypt(nonce: bytes, ciphertext: bytes, key: bytes, associated_data: bytes = None) -> str:
        """
        Decrypt ciphertext using AES-256-GCM.

        Raises:
            cryptography.exceptions.InvalidTag: If authentication fails
        """
        aesgcm = AESGCM(key)
        plaintext_bytes = aesgcm.decrypt(nonce, ciphertext, associated_data)

        return plaintext_bytes.decode('utf-8')

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data for storage (base64)."""
        return base64.b64encode(data).decode('utf-8')

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """Decode base64-encoded data from storage."""
        return base64.b64decode(data.encode('utf-8'))
