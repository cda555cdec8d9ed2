"""
File-backed storage for encrypted BLS secret keys.
"""
import os
import json
import stat
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List

import portalocker

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "~/.blswallet/keys.json"


class KeyStore:
    """Thread-safe and process-safe key store"""

    def __init__(self, store_path: Optional[str] = None):
        """
        Initialize the key store.

        Args:
            store_path: Optional custom path; defaults to BLS_WALLET_KEY_STORE_PATH
                or ~/.blswallet/keys.json
        """
        if store_path:
            self.store_path = Path(store_path)
        else:
            default_path = os.environ.get(
                "BLS_WALLET_KEY_STORE_PATH",
                os.path.expanduser(DEFAULT_STORE_PATH)
            )
            self.store_path = Path(default_path)

        self._ensure_dir()

    def _ensure_dir(self):
        """Create the store file and restrict its permissions"""
        directory = self.store_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

        if os.name == 'posix':
            os.chmod(directory, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)  # 0700

        if not self.store_path.exists():
            with portalocker.Lock(self._get_lock_path(), timeout=10):
                if not self.store_path.exists():
                    with open(self.store_path, 'w') as f:
                        json.dump({"keys": {}}, f)

        if os.name == 'posix':
            os.chmod(self.store_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
        elif os.name == 'nt':
            logger.info("Windows file permissions cannot be restricted to current user only."
                        " Consider using a KMS for production environments.")

    def _get_lock_path(self) -> str:
        return str(self.store_path) + '.lock'

    def _read_unlocked(self) -> Dict[str, Any]:
        try:
            with open(self.store_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            return {"keys": {}}
        data.setdefault("keys", {})
        return data

    def _write_unlocked(self, data: Dict[str, Any]):
        with open(self.store_path, 'w') as f:
            json.dump(data, f, indent=2)

    def read(self) -> Dict[str, Any]:
        """Read the whole store under the file lock"""
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            return self._read_unlocked()

    def write(self, data: Dict[str, Any]):
        """Replace the whole store under the file lock"""
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            self._write_unlocked(data)

    def add_key(self, key_id: str, key_data: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None):
        """
        Add an encrypted key.

        Args:
            key_id: Hex public key hash identifying the key
            key_data: Encrypted key material
            metadata: Optional metadata stored unencrypted
        """
        entry = dict(key_data)
        if metadata:
            entry["metadata"] = metadata
        # Read-modify-write under one lock so concurrent writers don't drop entries
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            store = self._read_unlocked()
            store["keys"][key_id] = entry
            self._write_unlocked(store)

    def get_key(self, key_id: str) -> Optional[Dict[str, Any]]:
        return self.read()["keys"].get(key_id)

    def list_keys(self) -> List[Dict[str, Any]]:
        return list(self.read()["keys"].values())

    def delete_key(self, key_id: str) -> bool:
        """Delete one key; returns False if it was not stored"""
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            store = self._read_unlocked()
            if key_id not in store["keys"]:
                return False
            del store["keys"][key_id]
            self._write_unlocked(store)
            return True

    def clear(self):
        """Delete every stored key"""
        self.write({"keys": {}})
