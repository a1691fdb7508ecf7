"""
Encryption service for landlord screening credentials.
Uses AES-256-GCM with the row layout written by the account-settings flow:

    encrypted_username = "<ciphertext hex>:<auth tag hex>"
    encrypted_password = "<ciphertext hex>:<auth tag hex>"
    encryption_iv      = "<username iv hex>:<password iv hex>"
"""

import os
import re
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
AUTH_TAG_LENGTH = 16

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


class EncryptionError(Exception):
    """Custom exception for encryption/decryption errors."""

    pass


@dataclass(slots=True)
class EncryptedValue:
    ciphertext: str
    iv: str
    auth_tag: str


def _get_cipher(key: str | None = None) -> AESGCM:
    """
    Get an AES-GCM cipher for the configured credentials key.

    Args:
        key: Optional hex key overriding SCREENING_CREDENTIALS_KEY

    Returns:
        AESGCM: Configured cipher

    Raises:
        EncryptionError: If the key is missing or not 64 hex characters
    """
    raw_key = key if key is not None else settings.SCREENING_CREDENTIALS_KEY
    if not raw_key:
        raise EncryptionError("SCREENING_CREDENTIALS_KEY not configured in environment")

    # Only the first 64 characters are significant; trailing whitespace is common in env files
    hex_key = raw_key.strip()[: KEY_LENGTH * 2]
    if not _HEX_KEY.match(hex_key):
        raise EncryptionError(
            f"SCREENING_CREDENTIALS_KEY must be {KEY_LENGTH * 2} hex characters "
            f"({KEY_LENGTH} bytes). Got {len(hex_key)} chars."
        )

    return AESGCM(bytes.fromhex(hex_key))


def encrypt_value(plaintext: str, *, key: str | None = None) -> EncryptedValue:
    """
    Encrypt one string with a fresh random IV.

    Raises:
        EncryptionError: If encryption fails
    """
    if not isinstance(plaintext, str):
        raise EncryptionError("Plaintext must be a string")

    cipher = _get_cipher(key)
    iv = os.urandom(IV_LENGTH)
    sealed = cipher.encrypt(iv, plaintext.encode("utf-8"), None)

    # AESGCM appends the tag to the ciphertext; the stored format keeps them apart
    return EncryptedValue(
        ciphertext=sealed[:-AUTH_TAG_LENGTH].hex(),
        iv=iv.hex(),
        auth_tag=sealed[-AUTH_TAG_LENGTH:].hex(),
    )


def decrypt_value(value: EncryptedValue, *, key: str | None = None) -> str:
    """
    Decrypt one stored value.

    Raises:
        EncryptionError: If the data is malformed, tampered with, or the key is wrong
    """
    cipher = _get_cipher(key)

    try:
        iv = bytes.fromhex(value.iv)
        sealed = bytes.fromhex(value.ciphertext) + bytes.fromhex(value.auth_tag)
    except ValueError as e:
        raise EncryptionError(f"Malformed encrypted value: {e}") from e

    if len(value.auth_tag) != AUTH_TAG_LENGTH * 2 or len(iv) != IV_LENGTH:
        raise EncryptionError("Malformed encrypted value: bad IV or auth tag length")

    try:
        return cipher.decrypt(iv, sealed, None).decode("utf-8")
    except InvalidTag as e:
        raise EncryptionError("Invalid or corrupted ciphertext") from e
    except ValueError as e:
        raise EncryptionError(f"Malformed encrypted value: {e}") from e
    except UnicodeDecodeError as e:
        raise EncryptionError(f"Decrypted value is not UTF-8: {e}") from e


def encrypt_credentials(username: str, password: str, *, key: str | None = None) -> dict[str, str]:
    """
    Encrypt a username/password pair into the stored column layout.

    Returns:
        dict: encrypted_username, encrypted_password, encryption_iv
    """
    username_data = encrypt_value(username, key=key)
    password_data = encrypt_value(password, key=key)

    return {
        "encrypted_username": f"{username_data.ciphertext}:{username_data.auth_tag}",
        "encrypted_password": f"{password_data.ciphertext}:{password_data.auth_tag}",
        "encryption_iv": f"{username_data.iv}:{password_data.iv}",
    }


def decrypt_credentials(
    encrypted_username: str,
    encrypted_password: str,
    encryption_iv: str,
    *,
    key: str | None = None,
) -> tuple[str, str]:
    """
    Decrypt a stored credential row.

    Returns:
        tuple: (username, password)

    Raises:
        EncryptionError: If any part is malformed or fails authentication
    """
    try:
        username_ct, username_tag = encrypted_username.split(":")
        password_ct, password_tag = encrypted_password.split(":")
        username_iv, password_iv = encryption_iv.split(":")
    except (AttributeError, ValueError) as e:
        raise EncryptionError("Credential columns are not in '<hex>:<hex>' form") from e

    username = decrypt_value(EncryptedValue(username_ct, username_iv, username_tag), key=key)
    password = decrypt_value(EncryptedValue(password_ct, password_iv, password_tag), key=key)

    return username, password


def validate_encryption_config() -> bool:
    """
    Validate that encryption is properly configured.

    Returns:
        bool: True if the key is configured and a round trip works
    """
    try:
        stored = encrypt_credentials("validation-user", "validation-pass")
        is_valid = decrypt_credentials(**stored) == ("validation-user", "validation-pass")

        if is_valid:
            logger.info("Encryption configuration validated successfully")
        else:
            logger.error("Encryption validation failed - data mismatch")

        return is_valid

    except Exception as e:
        logger.error("Encryption configuration validation failed", error=str(e))
        return False


def generate_new_key() -> str:
    """
    Generate a new credentials key.

    Returns:
        str: 64 hex characters

    Note:
        Rotating the key makes every stored credential row undecryptable;
        owners must re-enter their provider login afterwards.
    """
    key = os.urandom(KEY_LENGTH).hex()

    logger.info("New encryption key generated")

    return key
