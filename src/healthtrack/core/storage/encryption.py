"""Fernet encryption for structured metric payloads at rest.

Only the composite payload (systolic/diastolic/pulse) is encrypted. The
scalar ``value`` column stays in the clear so windowed queries and the
analytics engine can read it without a key.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Fernet tokens are urlsafe base64 and always start with the version byte 0x80
_TOKEN_PREFIX = "gAAAAA"


class EncryptionError(Exception):
    """Raised when a payload cannot be encrypted or decrypted."""


class FieldEncryptor:
    """Encrypts JSON-object payloads into Fernet tokens and back.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt({"systolic": 120, "diastolic": 80})
        encryptor.decrypt(token)  # {"systolic": 120, "diastolic": 80}
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, payload: dict[str, Any] | None) -> str:
        """Serialize ``payload`` to compact JSON and encrypt it.

        ``None`` encrypts to the empty string so NULL-ish payloads stay NULL-ish.
        """
        if payload is None:
            return ""
        try:
            plaintext = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> dict[str, Any] | None:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            EncryptionError: On a wrong key, a tampered token, or a payload
                that is not a JSON object.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            payload = json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise EncryptionError(f"Decrypted payload is not JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise EncryptionError("Decrypted payload is not a JSON object")
        return payload

    @staticmethod
    def looks_encrypted(raw: str) -> bool:
        """True when ``raw`` has the shape of a Fernet token rather than JSON."""
        return bool(raw) and raw.startswith(_TOKEN_PREFIX)

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
