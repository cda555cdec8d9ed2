"""
Encryption of stored secret keys.
"""
import os
import base64
import json
import logging
from typing import Dict, Any

import keyring
import nacl.secret
import nacl.utils
from keyring.errors import KeyringError
from nacl.exceptions import CryptoError

logger = logging.getLogger(__name__)

SERVICE_NAME = "blswallet-sdk"
KEY_NAME = "master-key"
MASTER_KEY_ENV = "BLS_WALLET_MASTER_KEY"

# Looked up once per process
_encryption_key_cache = None


def _in_ci() -> bool:
    return os.environ.get("CI") == "true"


def _decode_master_key(value: str) -> bytes:
    key = base64.b64decode(value)
    if len(key) != nacl.secret.SecretBox.KEY_SIZE:
        raise ValueError(f"Master key must be {nacl.secret.SecretBox.KEY_SIZE} bytes")
    return key


def get_encryption_key() -> bytes:
    """
    Get the master key from the environment (CI only) or the OS keyring.

    A new key is generated and stored in the keyring on first use.

    Returns:
        32-byte encryption key

    Raises:
        ValueError: If no key can be obtained or persisted
    """
    global _encryption_key_cache

    if _encryption_key_cache is not None:
        return _encryption_key_cache

    key = None
    if _in_ci() and os.environ.get(MASTER_KEY_ENV):
        key = _decode_master_key(os.environ[MASTER_KEY_ENV])

    if key is None:
        try:
            stored = keyring.get_password(SERVICE_NAME, KEY_NAME)
            if stored:
                key = _decode_master_key(stored)
        except KeyringError as e:
            logger.debug("Keyring access failed: %s", str(e))

    if key is None:
        key = nacl.utils.random(nacl.secret.SecretBox.KEY_SIZE)
        try:
            keyring.set_password(SERVICE_NAME, KEY_NAME, base64.b64encode(key).decode("ascii"))
        except KeyringError as e:
            if not _in_ci():
                raise ValueError(
                    "Failed to store encryption key in OS keyring and not in CI environment"
                ) from e
            logger.warning("Set %s to reuse stored keys across CI runs", MASTER_KEY_ENV)

    _encryption_key_cache = key
    return key


def reset_encryption_key_cache() -> None:
    global _encryption_key_cache
    _encryption_key_cache = None


def encrypt_key_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Encrypt key material with libsodium secretbox.

    Returns:
        ``{"encrypted": base64, "version": 1}``; the ciphertext embeds its nonce
    """
    box = nacl.secret.SecretBox(get_encryption_key())
    encrypted = box.encrypt(json.dumps(data).encode("utf-8"))
    return {
        "encrypted": base64.b64encode(encrypted).decode("ascii"),
        "version": 1
    }


def decrypt_key_data(encrypted_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decrypt key material.

    Raises:
        ValueError: If decryption fails (wrong master key or tampered data)
    """
    box = nacl.secret.SecretBox(get_encryption_key())
    try:
        decrypted = box.decrypt(base64.b64decode(encrypted_data["encrypted"]))
    except (CryptoError, KeyError, ValueError) as e:
        raise ValueError(f"Failed to decrypt key data: {e}")
    return json.loads(decrypted.decode("utf-8"))
