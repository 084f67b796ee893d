"""Typed value casting and at-rest encryption for stored settings.

Values of type ``encrypted`` are stored as base64-wrapped Fernet tokens
(AES-CBC with HMAC-SHA256 and a random IV per call), so the same plaintext
never produces the same stored text twice. The running process only ever sees
plaintext: the registry decrypts before casting.
"""

import base64
import binascii
import hashlib
import json
from collections.abc import Callable
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from .config import get_settings_instance
from .exceptions import EncryptionKeyError, ValueDecodeError

TYPE_STRING = "string"
TYPE_ENCRYPTED = "encrypted"

TRUTHY_STRINGS = frozenset({"1", "true", "yes", "on"})


def is_encrypted_type(value_type: str | None) -> bool:
    return (value_type or "").strip().lower() == TYPE_ENCRYPTED


def _fernet_for(raw_key: str) -> Fernet:
    """Build a Fernet instance from a configured key.

    A proper Fernet key is used as-is; any other passphrase is stretched with
    SHA-256 into 32 bytes of key material.
    """
    try:
        return Fernet(raw_key.encode())
    except ValueError:
        digest = hashlib.sha256(raw_key.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))


class ValueCodec:
    """Casts stored strings to runtime types and encrypts/decrypts secrets."""

    def __init__(self, key_provider: Callable[[], str | None] | None = None) -> None:
        self._key_provider = key_provider or (lambda: get_settings_instance().encryption_key)
        self._cached: tuple[str, Fernet] | None = None

    def get_encryption_key(self) -> str:
        """Return the configured encryption key.

        Raises:
            EncryptionKeyError: If the key is unset or empty. Running without a key
                would either store secrets in the clear or make them unreadable.

        """
        key = self._key_provider()
        if key is None or key == "":
            raise EncryptionKeyError(
                "DBCONFIG_ENCRYPTION_KEY is not configured. Set it in the environment or .env file."
            )
        return str(key)

    def _fernet(self) -> Fernet:
        key = self.get_encryption_key()
        if self._cached is None or self._cached[0] != key:
            self._cached = (key, _fernet_for(key))
        return self._cached[1]

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext value for storage in a text column.

        Args:
            plaintext: The value to protect

        Returns:
            Base64 text of a fresh Fernet token

        Raises:
            EncryptionKeyError: If no encryption key is configured

        """
        token = self._fernet().encrypt(plaintext.encode("utf-8"))
        return base64.b64encode(token).decode("ascii")

    def decrypt(self, stored: str | None) -> str | None:
        """Decrypt a stored value.

        Returns ``None`` instead of raising for empty input, invalid base64,
        tampered or foreign ciphertext and a wrong key, so a single bad row can be
        skipped. A missing key still raises ``EncryptionKeyError``.
        """
        if not stored:
            return None

        fernet = self._fernet()

        try:
            token = base64.b64decode(stored, validate=True)
        except (binascii.Error, ValueError):
            return None

        try:
            return fernet.decrypt(token).decode("utf-8")
        except (InvalidToken, UnicodeDecodeError):
            return None

    @staticmethod
    def cast_value(raw: Any, value_type: str | None) -> Any:
        """Cast a stored string to the runtime type named by ``value_type``.

        Unknown types pass the value through as a string. Malformed integers,
        floats and JSON raise ``ValueDecodeError`` rather than falling back to a
        default that would hide the misconfiguration.
        """
        normalized = (value_type or TYPE_STRING).strip().lower()

        if normalized in ("int", "integer"):
            try:
                return int(str(raw).strip())
            except (TypeError, ValueError) as e:
                raise ValueDecodeError(normalized, str(e)) from e

        if normalized == "float":
            try:
                return float(str(raw).strip())
            except (TypeError, ValueError) as e:
                raise ValueDecodeError(normalized, str(e)) from e

        if normalized in ("bool", "boolean"):
            if isinstance(raw, bool):
                return raw
            return str(raw).strip().lower() in TRUTHY_STRINGS

        if normalized == "json":
            try:
                return json.loads(raw)
            except (TypeError, ValueError) as e:
                raise ValueDecodeError(normalized, str(e)) from e

        # "encrypted" values are already decrypted by the caller; everything else is a string
        return raw


# Global codec instance
_value_codec: ValueCodec | None = None


def get_value_codec() -> ValueCodec:
    """Get the process-wide codec bound to the configured encryption key."""
    global _value_codec  # noqa: PLW0603
    if _value_codec is None:
        _value_codec = ValueCodec()
    return _value_codec
