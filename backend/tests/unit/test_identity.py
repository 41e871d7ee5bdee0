"""Tests for identity number normalization, hashing, and encryption."""

import pytest
from cryptography.fernet import Fernet
from pydantic import SecretStr

from hireflow.core.config import Settings
from hireflow.core.errors import ValidationError
from hireflow.core.identity import (
    IdentityCodec,
    is_valid_identity_number,
    normalize_identity,
)

VALID_SIN = "046454286"


class TestNormalizeIdentity:
    """Tests for normalize_identity."""

    def test_strips_spaces_and_dashes(self):
        assert normalize_identity("046 454 286") == VALID_SIN
        assert normalize_identity("046-454-286") == VALID_SIN

    def test_rejects_bad_check_digit(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_identity("123456789")
        assert exc_info.value.details == [
            {"field": "identity_number", "error": "INVALID_FORMAT"}
        ]

    def test_rejects_wrong_length(self):
        with pytest.raises(ValidationError):
            normalize_identity("04645428")

    def test_rejects_letters(self):
        assert not is_valid_identity_number("04645428a")


class TestIdentityCodec:
    """Tests for IdentityCodec."""

    @pytest.fixture
    def codec(self) -> IdentityCodec:
        return IdentityCodec(b"secret-one", Fernet.generate_key())

    def test_hash_is_deterministic_and_format_insensitive(self, codec):
        assert codec.hash(VALID_SIN) == codec.hash("046 454 286")

    def test_hash_depends_on_secret(self, codec):
        other = IdentityCodec(b"secret-two", Fernet.generate_key())
        assert codec.hash(VALID_SIN) != other.hash(VALID_SIN)

    def test_hash_never_contains_plaintext(self, codec):
        assert VALID_SIN not in codec.hash(VALID_SIN)

    def test_derive_round_trips_through_reveal(self, codec):
        derived = codec.derive("046-454-286")
        assert derived.identity_hash == codec.hash(VALID_SIN)
        assert VALID_SIN not in derived.identity_encrypted
        assert codec.reveal(derived.identity_encrypted) == VALID_SIN

    def test_reveal_with_wrong_key_raises_value_error(self, codec):
        other = IdentityCodec(b"secret-one", Fernet.generate_key())
        token = codec.derive(VALID_SIN).identity_encrypted
        with pytest.raises(ValueError, match="could not be decrypted"):
            other.reveal(token)

    def test_from_settings_derives_dev_key_when_unset(self):
        config = Settings(identity_hash_secret=SecretStr("x" * 40))
        first = IdentityCodec.from_settings(config)
        second = IdentityCodec.from_settings(config)
        token = first.derive(VALID_SIN).identity_encrypted
        assert second.reveal(token) == VALID_SIN

    def test_from_settings_uses_explicit_key(self):
        key = Fernet.generate_key().decode()
        config = Settings(identity_encryption_key=SecretStr(key))
        codec = IdentityCodec.from_settings(config)
        token = codec.derive(VALID_SIN).identity_encrypted
        assert Fernet(key.encode()).decrypt(token.encode()).decode() == VALID_SIN
