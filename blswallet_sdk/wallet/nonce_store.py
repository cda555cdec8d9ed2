"""
Per-wallet nonce counters.

The store is the only shared mutable state in the authorization path. Every
read-check-increment runs under one lock, so two submissions at the same
nonce cannot both succeed.
"""
import logging
import threading
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import NonceMismatchError
from ..utils import short_hex

logger = logging.getLogger(__name__)


class NonceStore:
    """Thread-safe mapping of public key hash to next expected nonce"""

    def __init__(self, initial: Optional[Mapping[bytes, int]] = None):
        """
        Initialize the store.

        Args:
            initial: Optional starting nonces keyed by public key hash
        """
        self._lock = threading.RLock()
        self._nonces: Dict[bytes, int] = {}
        for key, nonce in (initial or {}).items():
            if nonce < 0:
                raise ValueError("Nonces must be non-negative")
            self._nonces[bytes(key)] = nonce

    def get(self, key: bytes) -> int:
        """Current nonce for a wallet; unknown wallets start at zero"""
        with self._lock:
            return self._nonces.get(bytes(key), 0)

    def initialize(self, key: bytes, nonce: int = 0) -> None:
        """Start tracking a wallet. Existing counters are never lowered."""
        with self._lock:
            key = bytes(key)
            self._nonces[key] = max(self._nonces.get(key, 0), nonce)

    def consume(self, key: bytes, expected: int) -> int:
        """
        Advance a wallet's nonce if it equals ``expected``.

        Args:
            key: Public key hash
            expected: Nonce carried by the payload

        Returns:
            The new (next expected) nonce

        Raises:
            NonceMismatchError: If the stored nonce differs
        """
        return self.consume_many([(key, expected)])[0]

    def consume_many(self, entries: Sequence[Tuple[bytes, int]]) -> List[int]:
        """
        Atomically advance several nonces.

        Entries are applied in order, so a wallet listed twice must carry
        consecutive nonces. Either every entry matches and all counters
        advance, or nothing changes.

        Returns:
            The next expected nonce after each entry

        Raises:
            NonceMismatchError: On the first entry that does not match
        """
        with self._lock:
            pending, next_nonces = self._plan(entries)
            self._nonces.update(pending)
            logger.debug("Advanced %d nonces across %d wallets", len(next_nonces), len(pending))
            return next_nonces

    def check_many(self, entries: Sequence[Tuple[bytes, int]]) -> List[int]:
        """Same checks as ``consume_many`` without advancing anything"""
        with self._lock:
            _, next_nonces = self._plan(entries)
            return next_nonces

    def _plan(self, entries: Sequence[Tuple[bytes, int]]) -> Tuple[Dict[bytes, int], List[int]]:
        pending: Dict[bytes, int] = {}
        next_nonces = []
        for key, expected in entries:
            key = bytes(key)
            current = pending.get(key, self._nonces.get(key, 0))
            if current != expected:
                raise NonceMismatchError(
                    f"Nonce mismatch for wallet {short_hex(key)}: expected {current}, got {expected}",
                    expected=current,
                    actual=expected,
                )
            pending[key] = current + 1
            next_nonces.append(current + 1)
        return pending, next_nonces

    def snapshot(self) -> Dict[bytes, int]:
        """Copy of all tracked nonces"""
        with self._lock:
            return dict(self._nonces)

    def __contains__(self, key: bytes) -> bool:
        with self._lock:
            return bytes(key) in self._nonces

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)
