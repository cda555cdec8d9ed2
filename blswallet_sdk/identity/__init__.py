"""
Local storage of BLS signing keys.

Secret keys are encrypted with a master key held in the OS keyring and kept
in a JSON file keyed by public key hash.
"""
import os
import time
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union

from ..bls.signer import BlsSigner
from ..utils import to_bytes_data
from .key_store import KeyStore
from .crypto import encrypt_key_data, decrypt_key_data

__all__ = [
    'create_new_signer',
    'get_or_create_signer',
    'load_signer',
    'list_signers',
    'delete_local',
    'KeyStore',
]

logger = logging.getLogger(__name__)

_key_store = None
_key_store_path_cache = None


def _get_key_store() -> KeyStore:
    """Global KeyStore, recreated when BLS_WALLET_KEY_STORE_PATH changes"""
    global _key_store, _key_store_path_cache

    path = os.environ.get("BLS_WALLET_KEY_STORE_PATH")
    if _key_store is None or path != _key_store_path_cache:
        _key_store = KeyStore(path)
        _key_store_path_cache = path
    return _key_store


def _key_id(public_key_hash: Union[bytes, str]) -> str:
    return "0x" + to_bytes_data(public_key_hash, "public_key_hash").hex()


def _store_signer(signer: BlsSigner, label: Optional[str]) -> Dict[str, Any]:
    metadata = {
        "public_key": "0x" + signer.public_key.hex(),
        "public_key_hash": _key_id(signer.public_key_hash),
        "created_at": datetime.now(timezone.utc).isoformat(),
        "label": label,
    }
    encrypted = encrypt_key_data({"secret_key": "0x" + signer.secret_key_bytes().hex()})
    _get_key_store().add_key(metadata["public_key_hash"], encrypted, metadata)
    return metadata


def _entry_to_signer(entry: Dict[str, Any]) -> BlsSigner:
    data = decrypt_key_data(entry)
    signer = BlsSigner(int(data["secret_key"], 16))
    stored_hash = entry.get("metadata", {}).get("public_key_hash")
    if stored_hash and stored_hash != _key_id(signer.public_key_hash):
        raise ValueError("Stored key does not match its public key hash")
    return signer


def create_new_signer(label: Optional[str] = None) -> BlsSigner:
    """
    Generate a new BLS key and store it.

    Args:
        label: Optional human-readable name

    Returns:
        The new signer
    """
    start_time = time.time()
    signer = BlsSigner.generate()
    metadata = _store_signer(signer, label)
    elapsed_ms = (time.time() - start_time) * 1000
    logger.debug("Created key %s… in %.2f ms", metadata["public_key_hash"][:10], elapsed_ms)
    return signer


def get_or_create_signer(label: str = "default", auto: bool = True) -> BlsSigner:
    """
    Get the most recent key with ``label``, creating one if none exists.

    Raises:
        ValueError: If no key exists and auto=False
    """
    entries = [
        e for e in _get_key_store().list_keys()
        if e.get("metadata", {}).get("label") == label
    ]
    if entries:
        newest = max(entries, key=lambda e: e["metadata"].get("created_at", ""))
        return _entry_to_signer(newest)
    if not auto:
        raise ValueError(f"No key labelled {label!r} exists and auto=False")
    return create_new_signer(label)


def load_signer(public_key_hash: Union[bytes, str]) -> BlsSigner:
    """
    Load a stored key by public key hash.

    Raises:
        ValueError: If the key is not stored or cannot be decrypted
    """
    key_id = _key_id(public_key_hash)
    entry = _get_key_store().get_key(key_id)
    if entry is None:
        raise ValueError(f"No stored key for {key_id[:10]}…")
    return _entry_to_signer(entry)


def list_signers() -> List[Dict[str, Any]]:
    """Metadata of every stored key (no secrets are decrypted)"""
    return [dict(e.get("metadata", {})) for e in _get_key_store().list_keys()]


def delete_local(public_key_hash: Optional[Union[bytes, str]] = None) -> None:
    """
    Delete one stored key, or every key when no hash is given.

    Warning: deleted keys cannot be recovered, and wallets they control become
    unusable.
    """
    store = _get_key_store()
    if public_key_hash is None:
        store.clear()
        logger.info("Deleted all local key data")
        return
    if store.delete_key(_key_id(public_key_hash)):
        logger.info("Deleted local key %s…", _key_id(public_key_hash)[:10])
