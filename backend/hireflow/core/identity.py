"""Identity number protection.

An applicant's government identity number (SIN) is stored twice, never in
plaintext:

- identity_hash: keyed HMAC-SHA256 of the normalized number. Deterministic,
  so it backs the unique index used for "does an application already
  exist" lookups.
- identity_encrypted: Fernet token of the normalized number, so staff can
  recover it for document generation.

Both forms are computed explicitly by IdentityCodec.derive() before a
session value is built. Nothing is derived implicitly on save.
"""

import base64
import hashlib
import hmac
import re
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

from hireflow.core.config import Settings
from hireflow.core.errors import ValidationError

_SEPARATORS = re.compile(r"[\s\-]")
_IDENTITY_LENGTH = 9


def normalize_identity(value: str) -> str:
    """Strip separators from an identity number.

    Args:
        value: Raw identity number as typed (e.g., "046 454 286").

    Returns:
        Digits only.

    Raises:
        ValidationError: If the number is not nine digits with a valid
            Luhn check digit.
    """
    normalized = _SEPARATORS.sub("", value or "")
    if not is_valid_identity_number(normalized):
        raise ValidationError(
            message="Invalid identity number",
            details=[{"field": "identity_number", "error": "INVALID_FORMAT"}],
        )
    return normalized


def is_valid_identity_number(digits: str) -> bool:
    """Check length and Luhn checksum of a normalized identity number."""
    if len(digits) != _IDENTITY_LENGTH or not digits.isdigit():
        return False
    total = 0
    for position, char in enumerate(digits):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


@dataclass(frozen=True)
class DerivedIdentity:
    """Stored forms of one identity number."""

    identity_hash: str
    identity_encrypted: str


class IdentityCodec:
    """Derives, matches, and reveals protected identity numbers.

    Args:
        hash_secret: HMAC key for the lookup hash.
        encryption_key: Fernet key (urlsafe base64, 32 bytes).
    """

    def __init__(self, hash_secret: bytes, encryption_key: bytes) -> None:
        self._hash_secret = hash_secret
        self._fernet = Fernet(encryption_key)

    @classmethod
    def from_settings(cls, config: Settings) -> "IdentityCodec":
        """Build a codec from application settings.

        WHY DERIVED DEV KEY: local runs work without generating a Fernet key.
        Production settings validation requires an explicit key.
        """
        secret = config.identity_hash_secret.get_secret_value().encode()
        key = config.identity_encryption_key.get_secret_value().encode()
        if not key:
            key = base64.urlsafe_b64encode(hashlib.sha256(secret).digest())
        return cls(hash_secret=secret, encryption_key=key)

    def hash(self, identity: str) -> str:
        """Return the lookup hash for a raw identity number."""
        normalized = normalize_identity(identity)
        return hmac.new(
            self._hash_secret, normalized.encode(), hashlib.sha256
        ).hexdigest()

    def derive(self, identity: str) -> DerivedIdentity:
        """Compute both stored forms of a raw identity number.

        Raises:
            ValidationError: If the identity number is malformed.
        """
        normalized = normalize_identity(identity)
        return DerivedIdentity(
            identity_hash=hmac.new(
                self._hash_secret, normalized.encode(), hashlib.sha256
            ).hexdigest(),
            identity_encrypted=self._fernet.encrypt(normalized.encode()).decode(),
        )

    def reveal(self, identity_encrypted: str) -> str:
        """Decrypt a stored identity number.

        Raises:
            ValueError: If the token was not produced with this key.
        """
        try:
            return self._fernet.decrypt(identity_encrypted.encode()).decode()
        except InvalidToken as exc:
            raise ValueError("Identity token could not be decrypted") from exc
