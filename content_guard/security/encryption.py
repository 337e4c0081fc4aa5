"""Encryption at rest for sensitive document bodies. Key from settings; fail if missing."""

import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from content_guard.security.exceptions import EncryptionError

# Fernet (AES-128-CBC + HMAC-SHA256) keyed by PBKDF2 over the deployment secret.
DEFAULT_SALT = b"content_guard_document_body_v1"
KDF_ITERATIONS = 480000


def _derive_key(secret: str, salt: bytes = DEFAULT_SALT) -> bytes:
    """Derive a 32-byte key for Fernet from a variable-length secret."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


class EncryptionService:
    """
    Encrypts and decrypts document bodies for sensitivity levels whose policy
    requires encryption. The key is injected (ENCRYPTION_KEY via settings).
    """

    def __init__(self, key: Optional[str]) -> None:
        if not key or not key.strip():
            raise EncryptionError(
                "Encryption key is required. Set ENCRYPTION_KEY in environment."
            )
        self._fernet = Fernet(_derive_key(key.strip()))

    def encrypt(self, plaintext: str) -> str:
        """Return a Fernet token (URL-safe base64 text)."""
        try:
            return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")
        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}") from e

    def decrypt(self, ciphertext: str) -> str:
        """Raises EncryptionError if the key is wrong or the ciphertext is corrupt."""
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise EncryptionError("Decryption failed: invalid or wrong key") from e
        except Exception as e:
            raise EncryptionError(f"Decryption failed: {e}") from e
