"""
Registry of BLS wallets keyed by public key hash.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union

from eth_utils import keccak, to_checksum_address

from ..bls.constants import G2_POINT_SIZE
from ..bls.curve import PointG2, deserialize_g2
from ..bls.signer import public_key_hash as hash_public_key
from ..exceptions import AlreadyRegisteredError, MalformedInputError, UnknownWalletError
from ..utils import BytesLike, normalize_address, short_hex, to_bytes_data

logger = logging.getLogger(__name__)

WalletRef = Union[bytes, bytearray, str]


def default_wallet_address(public_key_hash: bytes) -> str:
    """
    Placeholder execution address for a wallet registered without one.

    Real deployments pass the proxy address they deployed.
    """
    return to_checksum_address(keccak(b"blswallet" + bytes(public_key_hash))[-20:])


@dataclass(frozen=True)
class Wallet:
    """
    A registered BLS wallet.

    Attributes:
        public_key: Serialized 128-byte G2 public key
        public_key_hash: keccak256 of ``public_key``, the compact identifier
        address: Checksummed address the wallet executes calls from
        point: Validated G2 point, cached for verification
    """
    public_key: bytes
    public_key_hash: bytes
    address: str
    point: PointG2 = field(repr=False, compare=False)


class WalletRegistry:
    """Thread-safe wallet registry. Public keys are fixed for a wallet's life."""

    def __init__(self):
        self._lock = threading.RLock()
        self._wallets: Dict[bytes, Wallet] = {}

    @staticmethod
    def build_wallet(public_key: BytesLike, address: Optional[Union[str, bytes]] = None) -> Wallet:
        """
        Validate a public key and build a ``Wallet`` without registering it.

        Raises:
            MalformedInputError: If the key is malformed or outside the subgroup
        """
        public_key = to_bytes_data(public_key, "public_key")
        point = deserialize_g2(public_key)
        key_hash = hash_public_key(public_key)
        wallet_address = normalize_address(address) if address is not None else default_wallet_address(key_hash)
        return Wallet(public_key=public_key, public_key_hash=key_hash, address=wallet_address, point=point)

    def add(self, wallet: Wallet) -> Wallet:
        """
        Register an already validated wallet.

        Raises:
            AlreadyRegisteredError: If the key already has a wallet
        """
        with self._lock:
            if wallet.public_key_hash in self._wallets:
                raise AlreadyRegisteredError(
                    f"Wallet {short_hex(wallet.public_key_hash)} is already registered"
                )
            self._wallets[wallet.public_key_hash] = wallet
        logger.info("Registered wallet %s at %s", short_hex(wallet.public_key_hash), wallet.address)
        return wallet

    def register(self, public_key: BytesLike, address: Optional[Union[str, bytes]] = None) -> Wallet:
        """Validate and register a public key"""
        return self.add(self.build_wallet(public_key, address))

    def resolve(self, ref: WalletRef) -> Wallet:
        """
        Look up a wallet by public key hash (32 bytes) or full public key (128 bytes).

        Raises:
            MalformedInputError: If the reference has another length
            UnknownWalletError: If no wallet matches
        """
        raw = to_bytes_data(ref, "wallet reference")
        if len(raw) == G2_POINT_SIZE:
            key_hash = hash_public_key(raw)
        elif len(raw) == 32:
            key_hash = raw
        else:
            raise MalformedInputError(
                f"Wallet reference must be a 32-byte key hash or a {G2_POINT_SIZE}-byte public key"
            )
        with self._lock:
            wallet = self._wallets.get(key_hash)
        if wallet is None:
            raise UnknownWalletError(f"No wallet registered for {short_hex(key_hash)}")
        return wallet

    def find_by_address(self, address: Union[str, bytes]) -> Optional[Wallet]:
        address = normalize_address(address)
        with self._lock:
            for wallet in self._wallets.values():
                if wallet.address == address:
                    return wallet
        return None

    def wallets(self) -> List[Wallet]:
        with self._lock:
            return list(self._wallets.values())

    def __contains__(self, ref: WalletRef) -> bool:
        try:
            self.resolve(ref)
            return True
        except MalformedInputError:
            return False

    def __iter__(self) -> Iterator[Wallet]:
        return iter(self.wallets())

    def __len__(self) -> int:
        with self._lock:
            return len(self._wallets)
