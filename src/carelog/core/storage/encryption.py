"""Fernet-based field encryption for health data at rest.

Vital values, notes, dose lists and timeline details are encrypted before
they reach SQLite. Ordering keys (timestamps, dates) and derived scores stay
in the clear so they can be indexed and sorted.

Key rotation: pass retired keys as ``previous_keys``. Tokens written under
any of them still decrypt; new tokens always use the primary key, and
:meth:`FieldEncryptor.rotate` re-encrypts an old token under it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


def _load_key(key: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError("Encryption key must not be empty")
    try:
        return Fernet(key.strip().encode())
    except (ValueError, TypeError) as exc:
        raise EncryptionError(f"Invalid encryption key: {exc}") from exc


class FieldEncryptor:
    """Encrypts and decrypts JSON-serializable values.

    Usage::

        encryptor = FieldEncryptor(key="...")
        token = encryptor.encrypt({"systolic": 148, "diastolic": 95})
        encryptor.decrypt(token)  # {"systolic": 148, "diastolic": 95}
    """

    def __init__(self, key: str, *, previous_keys: Iterable[str] = ()) -> None:
        """Initialize with a primary Fernet key and optional retired keys.

        Raises:
            EncryptionError: If any key is empty or invalid.
        """
        fernets = [_load_key(key)] + [_load_key(k) for k in previous_keys]
        self._fernet = MultiFernet(fernets)
        self._key_count = len(fernets)

    @property
    def key_count(self) -> int:
        return self._key_count

    def encrypt(self, data: Any) -> str:
        """Encrypt a JSON-serializable value to a Fernet token string.

        ``None`` encrypts to the empty string so absent blobs stay NULL-like.

        Raises:
            EncryptionError: If serialization or encryption fails.
        """
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str) -> Any:
        """Decrypt a Fernet token string back to a Python object.

        Raises:
            EncryptionError: If the token is invalid or no key can open it.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    def rotate(self, token: str) -> str:
        """Re-encrypt ``token`` under the primary key."""
        if not token:
            return ""
        try:
            return self._fernet.rotate(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte Fernet key."""
        return Fernet.generate_key().decode("utf-8")
