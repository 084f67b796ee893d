"""Unit tests for value casting and at-rest encryption of settings."""

import base64

import pytest
from cryptography.fernet import Fernet

from dbconfig.core.exceptions import EncryptionKeyError, ValueDecodeError
from dbconfig.core.value_codec import ValueCodec, is_encrypted_type


class TestEncryption:
    """Tests for ValueCodec.encrypt / decrypt."""

    def test_encrypt_then_decrypt(self, codec: ValueCodec) -> None:
        stored = codec.encrypt("smtp-secret")
        assert stored != "smtp-secret"
        assert codec.decrypt(stored) == "smtp-secret"

    def test_encrypt_is_randomized(self, codec: ValueCodec) -> None:
        assert codec.encrypt("same") != codec.encrypt("same")

    def test_stored_form_is_base64_text(self, codec: ValueCodec) -> None:
        stored = codec.encrypt("value")
        base64.b64decode(stored, validate=True)

    def test_unicode_plaintext(self, codec: ValueCodec) -> None:
        assert codec.decrypt(codec.encrypt("pässwörd ✓")) == "pässwörd ✓"

    def test_wrong_key_returns_none(self, codec: ValueCodec) -> None:
        stored = codec.encrypt("secret")
        other = ValueCodec(key_provider=lambda: "another-key")
        assert other.decrypt(stored) is None

    def test_tampered_ciphertext_returns_none(self, codec: ValueCodec) -> None:
        token = bytearray(base64.b64decode(codec.encrypt("secret")))
        token[-1] ^= 0x01
        assert codec.decrypt(base64.b64encode(bytes(token)).decode()) is None

    @pytest.mark.parametrize("stored", ["", None, "not base64 at all!", base64.b64encode(b"short").decode()])
    def test_garbage_returns_none(self, codec: ValueCodec, stored) -> None:
        assert codec.decrypt(stored) is None

    def test_proper_fernet_key_used_as_is(self) -> None:
        key = Fernet.generate_key().decode()
        codec = ValueCodec(key_provider=lambda: key)
        token = base64.b64decode(codec.encrypt("x"))
        assert Fernet(key.encode()).decrypt(token) == b"x"

    @pytest.mark.parametrize("key", [None, ""])
    def test_missing_key_raises_on_encrypt(self, key) -> None:
        codec = ValueCodec(key_provider=lambda: key)
        with pytest.raises(EncryptionKeyError):
            codec.encrypt("secret")

    def test_missing_key_raises_on_decrypt(self, codec: ValueCodec) -> None:
        stored = codec.encrypt("secret")
        with pytest.raises(EncryptionKeyError):
            ValueCodec(key_provider=lambda: None).decrypt(stored)

    def test_key_rotation_is_picked_up(self) -> None:
        keys = ["first"]
        codec = ValueCodec(key_provider=lambda: keys[0])
        stored = codec.encrypt("secret")
        keys[0] = "second"
        assert codec.decrypt(stored) is None


class TestCastValue:
    """Tests for ValueCodec.cast_value."""

    @pytest.mark.parametrize("value_type", ["int", "integer", "Integer"])
    def test_integer(self, value_type: str) -> None:
        assert ValueCodec.cast_value("25", value_type) == 25

    def test_float(self) -> None:
        assert ValueCodec.cast_value("1.5", "float") == 1.5

    @pytest.mark.parametrize("raw", ["1", "true", "TRUE", "yes", "on", " On "])
    def test_boolean_truthy(self, raw: str) -> None:
        assert ValueCodec.cast_value(raw, "boolean") is True

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", "", "anything"])
    def test_boolean_falsy(self, raw: str) -> None:
        assert ValueCodec.cast_value(raw, "bool") is False

    def test_json(self) -> None:
        assert ValueCodec.cast_value('{"a": [1, 2]}', "json") == {"a": [1, 2]}

    @pytest.mark.parametrize(
        "raw,value_type",
        [("abc", "integer"), ("1.5", "int"), ("x", "float"), ("{not json", "json")],
    )
    def test_malformed_values_raise(self, raw: str, value_type: str) -> None:
        with pytest.raises(ValueDecodeError):
            ValueCodec.cast_value(raw, value_type)

    def test_decode_error_keeps_parser_cause(self) -> None:
        with pytest.raises(ValueDecodeError) as exc_info:
            ValueCodec.cast_value("{not json", "json")
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.parametrize("value_type", ["string", "encrypted", "text", "unknown-type", None])
    def test_passthrough_types(self, value_type) -> None:
        assert ValueCodec.cast_value("hello", value_type) == "hello"


@pytest.mark.parametrize(
    "value_type,expected",
    [("encrypted", True), ("Encrypted", True), (" encrypted ", True), ("string", False), (None, False)],
)
def test_is_encrypted_type(value_type, expected: bool) -> None:
    assert is_encrypted_type(value_type) is expected
