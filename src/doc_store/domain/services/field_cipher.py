"""Field-level encryption for stored documents.

Selected dot-path fields are JSON-encoded and encrypted with Fernet
(AES-128-CBC + HMAC). The Fernet key is derived from a passphrase with
SHA-256, so the same passphrase always decrypts the same data.

The stored value of an encrypted field is the Fernet token as a string.
Predicates, secondary indexes and the full-text index only ever see the
token.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Iterable

from cryptography.fernet import Fernet, InvalidToken

from doc_store.domain.entities import MISSING, deep_clone, get_path, set_path
from doc_store.infrastructure.logging import get_logger

logger = get_logger(__name__)


class DecryptionError(Exception):
    """A stored field value could not be decrypted with the current key."""

    pass


def derive_key(passphrase: str | bytes) -> bytes:
    """Derive a urlsafe-base64 Fernet key from an arbitrary passphrase."""
    raw = passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class FieldCipher:
    """Encrypts and decrypts configured fields of documents.

    A cipher without a key is a no-op in both directions.

    Usage:
        cipher = FieldCipher(["ssn"], key="passphrase")
        stored = cipher.encrypt_document({"ssn": "123-45-6789"})
        cipher.decrypt_document(stored)  # -> {"ssn": "123-45-6789"}
    """

    def __init__(self, fields: Iterable[str] = (), key: str | bytes | None = None) -> None:
        self._fields: list[str] = list(fields)
        self._fernet: Fernet | None = None
        if key is not None:
            self.set_key(key)

    @property
    def fields(self) -> list[str]:
        return list(self._fields)

    @property
    def enabled(self) -> bool:
        return self._fernet is not None and bool(self._fields)

    def set_fields(self, fields: Iterable[str]) -> None:
        self._fields = list(fields)

    def set_key(self, key: str | bytes | None) -> None:
        self._fernet = Fernet(derive_key(key)) if key else None

    def encrypt_value(self, value: Any) -> str:
        if self._fernet is None:
            raise ValueError("No encryption key set")
        plaintext = json.dumps(value, separators=(",", ":")).encode("utf-8")
        return self._fernet.encrypt(plaintext).decode("ascii")

    def decrypt_value(self, token: Any) -> Any:
        """Decrypt one stored value.

        Raises:
            DecryptionError: If ``token`` is not a valid token for this key.
        """
        if self._fernet is None:
            raise DecryptionError("No encryption key set")
        if not isinstance(token, str):
            raise DecryptionError(f"Expected a token string, got {type(token).__name__}")
        try:
            plaintext = self._fernet.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            raise DecryptionError("Invalid token for the current key") from e
        return json.loads(plaintext.decode("utf-8"))

    def encrypt_document(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``doc`` with every present configured field encrypted."""
        if not self.enabled:
            return doc
        encrypted = deep_clone(doc)
        for path in self._fields:
            value = get_path(encrypted, path)
            if value is not MISSING:
                set_path(encrypted, path, self.encrypt_value(value))
        return encrypted

    def decrypt_document(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``doc`` with configured fields decrypted.

        A field that fails to decrypt is logged and left as stored.
        """
        if not self.enabled:
            return doc
        decrypted = deep_clone(doc)
        for path in self._fields:
            value = get_path(decrypted, path)
            if value is MISSING:
                continue
            try:
                set_path(decrypted, path, self.decrypt_value(value))
            except DecryptionError as e:
                logger.warning(
                    "field_decryption_failed",
                    field=path,
                    document_id=decrypted.get("_id"),
                    error=str(e),
                )
        return decrypted
