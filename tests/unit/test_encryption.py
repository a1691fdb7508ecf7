"""
Test screening credential encryption.
"""

import pytest

from app.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_credentials,
    encrypt_credentials,
    generate_new_key,
    validate_encryption_config,
)

OTHER_KEY = "f" * 64


def test_credentials_round_trip_uses_stored_layout():
    """Stored columns are '<hex>:<hex>' pairs and decrypt back to the login."""
    stored = encrypt_credentials("landlord@example.com", "p@ss:word<&>")

    for column in ("encrypted_username", "encrypted_password", "encryption_iv"):
        left, right = stored[column].split(":")
        bytes.fromhex(left)
        bytes.fromhex(right)

    username_iv, password_iv = stored["encryption_iv"].split(":")
    assert len(username_iv) == 32
    assert username_iv != password_iv
    assert len(stored["encrypted_username"].split(":")[1]) == 32

    assert decrypt_credentials(**stored) == ("landlord@example.com", "p@ss:word<&>")


def test_encryption_uses_fresh_iv_each_time():
    first = encrypt_credentials("user", "pass")
    second = encrypt_credentials("user", "pass")

    assert first["encryption_iv"] != second["encryption_iv"]
    assert first["encrypted_username"] != second["encrypted_username"]


def test_decrypt_with_wrong_key_fails():
    stored = encrypt_credentials("user", "pass")

    with pytest.raises(EncryptionError):
        decrypt_credentials(**stored, key=OTHER_KEY)


def test_tampered_ciphertext_fails():
    stored = encrypt_credentials("user", "pass")
    ciphertext, tag = stored["encrypted_password"].split(":")
    flipped = ("0" if ciphertext[0] != "0" else "1") + ciphertext[1:]
    stored["encrypted_password"] = f"{flipped}:{tag}"

    with pytest.raises(EncryptionError):
        decrypt_credentials(**stored)


@pytest.mark.parametrize(
    "column, value",
    [
        ("encrypted_username", "no-separator"),
        ("encryption_iv", "zz:zz"),
        ("encrypted_password", "abcd:12"),
        ("encryption_iv", "abcd:abcd"),
    ],
)
def test_malformed_columns_raise_encryption_error(column, value):
    stored = encrypt_credentials("user", "pass")
    stored[column] = value

    with pytest.raises(EncryptionError):
        decrypt_credentials(**stored)


def test_invalid_key_rejected():
    with pytest.raises(EncryptionError):
        encrypt_credentials("user", "pass", key="not-hex")


def test_explicit_key_round_trip():
    key = generate_new_key()
    assert len(key) == 64

    stored = encrypt_credentials("user", "pass", key=key)
    assert decrypt_credentials(**stored, key=key) == ("user", "pass")


def test_encryption_config_validation():
    assert validate_encryption_config() is True
