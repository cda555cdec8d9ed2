"""
Authorization verifier.

Decides whether a payload (or a batch of payloads) was authorized by the
owners of the referenced wallets, and enforces per-wallet nonce ordering so
that every signature is accepted at most once.
"""
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from py_ecc.optimized_bn128 import is_inf

from ..bls.constants import DOMAIN
from ..bls.curve import NEG_G2, PointG1, PointG2, deserialize_g1, hash_to_g1, pairing_check
from ..exceptions import AlreadyRegisteredError, MalformedInputError, NonceMismatchError
from ..models import BatchVerificationResult, RejectReason, VerificationResult
from ..utils import BytesLike, normalize_address, short_hex, to_bytes_data
from ._rate_limited_log import rate_limited_log
from .nonce_store import NonceStore
from .payload import Payload, creation_call_data, hash_call_data
from .registry import Wallet, WalletRef, WalletRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleSignature:
    """Signature by one wallet over one payload"""
    signature: bytes

    def __post_init__(self):
        object.__setattr__(self, "signature", to_bytes_data(self.signature, "signature"))

    def point(self) -> PointG1:
        return deserialize_g1(self.signature)

    def verifies(self, public_key: PointG2, message_point: PointG1) -> bool:
        """e(sig, -g2) * e(H(m), pk) == 1"""
        sig_point = self.point()
        if is_inf(sig_point):
            return False
        return pairing_check([(NEG_G2, sig_point), (public_key, message_point)])


@dataclass(frozen=True)
class AggregateSignature:
    """Sum of signatures over several (payload, wallet) pairs"""
    signature: bytes

    def __post_init__(self):
        object.__setattr__(self, "signature", to_bytes_data(self.signature, "signature"))

    def point(self) -> PointG1:
        return deserialize_g1(self.signature)

    def verifies(self, public_keys: Sequence[PointG2], message_points: Sequence[PointG1]) -> bool:
        """
        Check the aggregate against every (key, message) pair in one
        multi-pairing: e(sig, -g2) * prod e(H(m_i), pk_i) == 1.
        """
        if len(public_keys) != len(message_points) or not public_keys:
            raise MalformedInputError("Aggregate check needs one message per public key")
        sig_point = self.point()
        if is_inf(sig_point):
            return False
        pairs = [(NEG_G2, sig_point)]
        pairs.extend(zip(public_keys, message_points))
        return pairing_check(pairs)


SignatureInput = Union[SingleSignature, AggregateSignature, bytes, str]


class _Rejected(Exception):
    """Internal signal carrying a rejection out of the checks"""

    def __init__(self, reason: RejectReason, detail: Optional[str] = None,
                 expected: Optional[int] = None, actual: Optional[int] = None):
        self.reason = reason
        self.detail = detail
        self.expected = expected
        self.actual = actual
        super().__init__(reason.value)


class AuthorizationVerifier:
    """
    Verifies BLS-authorized payloads against registered wallets.

    The verifier owns a ``NonceStore``; hand the same store (or the verifier
    itself) to every component that authorizes operations for these wallets.
    Only the nonce store is mutated, and only after every check passed.
    """

    def __init__(
        self,
        chain_id: int,
        registry: Optional[WalletRegistry] = None,
        nonce_store: Optional[NonceStore] = None,
        domain: bytes = DOMAIN,
        gateway_address: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the verifier.

        Args:
            chain_id: Chain id every accepted payload must carry
            registry: Wallet registry (a fresh one if omitted)
            nonce_store: Nonce store (a fresh one if omitted)
            domain: 32-byte domain separator used for encoding and hashing
            gateway_address: Expected target of wallet creation payloads
            logger: Optional logger instance
        """
        if not isinstance(chain_id, int) or chain_id < 0:
            raise MalformedInputError("chain_id must be a non-negative integer")
        if not isinstance(domain, (bytes, bytearray)) or len(domain) != 32:
            raise MalformedInputError("Domain separator must be 32 bytes")
        self.chain_id = chain_id
        self.registry = registry if registry is not None else WalletRegistry()
        self.nonce_store = nonce_store if nonce_store is not None else NonceStore()
        self.domain = bytes(domain)
        self.gateway_address = normalize_address(gateway_address) if gateway_address else None
        self.logger = logger or logging.getLogger(__name__)
        # Serializes wallet creation so registration and nonce 0 are consumed together
        self._create_lock = threading.RLock()

    @classmethod
    def from_network(cls, network: str, **kwargs) -> "AuthorizationVerifier":
        """
        Build a verifier for a configured network.

        Args:
            network: Network name from networks.json
            **kwargs: Passed through to the constructor

        Raises:
            ValueError: If the network is unknown
        """
        from ..config import NetworkConfig

        kwargs.setdefault("gateway_address", NetworkConfig.get_gateway_address(network))
        return cls(NetworkConfig.get_chain_id(network), **kwargs)

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def register_wallet(self, public_key: BytesLike, address: Optional[str] = None) -> Wallet:
        """
        Register a wallet directly, without a creation signature.

        The wallet's nonce starts at 0.

        Raises:
            MalformedInputError: If the key is malformed
            AlreadyRegisteredError: If the key already has a wallet
        """
        wallet = self.registry.build_wallet(public_key, address)
        with self._create_lock:
            self.registry.add(wallet)
            self.nonce_store.initialize(wallet.public_key_hash, 0)
        return wallet

    def nonce_of(self, wallet_ref: WalletRef) -> int:
        """Next nonce the wallet must use"""
        return self.nonce_store.get(self.registry.resolve(wallet_ref).public_key_hash)

    def create_wallet(
        self,
        public_key: BytesLike,
        payload: Payload,
        signature: SignatureInput,
        address: Optional[str] = None,
    ) -> VerificationResult:
        """
        Create a wallet from a signed creation payload.

        The payload must be the nonce-0 ``walletCrossCheck`` call for the key
        (see ``creation_payload``). The wallet is registered only if the
        signature verifies under the new key; its nonce 0 is consumed by the
        creation itself.

        Raises:
            MalformedInputError: If the key or payload is malformed
            AlreadyRegisteredError: If the key already has a wallet
        """
        result = self.create_wallets([public_key], [payload], _as_aggregate(signature),
                                     addresses=[address])
        return _single(result)

    def create_wallets(
        self,
        public_keys: Sequence[BytesLike],
        payloads: Sequence[Payload],
        signature: SignatureInput,
        addresses: Optional[Sequence[Optional[str]]] = None,
    ) -> BatchVerificationResult:
        """
        Create several wallets from one aggregate signature.

        Atomic: either every wallet is registered or none is.

        Args:
            public_keys: New wallets' public keys
            payloads: Creation payload signed by each key
            signature: Aggregate of the creation signatures
            addresses: Optional execution address per wallet

        Returns:
            BatchVerificationResult for the creation payloads
        """
        if len(public_keys) != len(payloads):
            raise MalformedInputError("Number of public keys and payloads must be equal")
        if not public_keys:
            raise MalformedInputError("Nothing to create")
        if addresses is None:
            addresses = [None] * len(public_keys)
        if len(addresses) != len(public_keys):
            raise MalformedInputError("Number of addresses and public keys must be equal")

        wallets = [self.registry.build_wallet(pk, addr) for pk, addr in zip(public_keys, addresses)]
        if len({w.public_key_hash for w in wallets}) != len(wallets):
            raise MalformedInputError("Duplicate public key in wallet creation batch")
        for wallet, payload in zip(wallets, payloads):
            self._check_creation_payload(wallet, payload)
            if wallet.public_key_hash in self.registry:
                raise AlreadyRegisteredError(
                    f"Wallet {short_hex(wallet.public_key_hash)} is already registered"
                )

        signature = self._checked_signature(_as_aggregate(signature), len(payloads))
        messages = [payload.encode(self.domain) for payload in payloads]
        try:
            self._check_chain(payloads)
            self._check_pairing(signature, wallets, messages)
        except _Rejected as rejected:
            return self._reject_batch(rejected, [0] * len(wallets), "wallet creation")

        entries = [(w.public_key_hash, 0) for w in wallets]
        with self._create_lock:
            for wallet in wallets:
                if wallet.public_key_hash in self.registry:
                    raise AlreadyRegisteredError(
                        f"Wallet {short_hex(wallet.public_key_hash)} is already registered"
                    )
            try:
                self._check_nonces(entries)
            except _Rejected as rejected:
                return self._reject_batch(rejected, [self.nonce_store.get(k) for k, _ in entries],
                                          "wallet creation")
            for wallet in wallets:
                self.registry.add(wallet)
            next_nonces = self.nonce_store.consume_many(entries)
        self.logger.info("Created %d wallet(s)", len(wallets))
        return BatchVerificationResult(accepted=[True] * len(wallets), next_nonces=next_nonces)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def check_signature(self, payload: Payload, wallet_ref: WalletRef,
                        signature: SignatureInput) -> VerificationResult:
        """
        Run every check ``verify`` runs without consuming the nonce.

        Useful to validate an operation before queueing it.
        """
        return _single(self._authorize([payload], [wallet_ref], _as_single(signature), commit=False))

    def verify(self, payload: Payload, wallet_ref: WalletRef,
               signature: SignatureInput) -> VerificationResult:
        """
        Verify one payload and consume the wallet's nonce on success.

        Accepted iff the chain id matches, the nonce equals the wallet's stored
        nonce and the signature verifies under the wallet's public key.

        Args:
            payload: Payload that was signed
            wallet_ref: Public key hash or full public key (bytes or hex)
            signature: ``SingleSignature`` (raw bytes are treated as one)

        Returns:
            VerificationResult; rejected results leave the nonce untouched

        Raises:
            MalformedInputError: On malformed inputs or an unknown wallet
        """
        return _single(self._authorize([payload], [wallet_ref], _as_single(signature), commit=True))

    def verify_batch(self, payloads: Sequence[Payload], wallet_refs: Sequence[WalletRef],
                     signature: SignatureInput) -> BatchVerificationResult:
        """
        Verify a batch against one aggregate signature.

        A wallet may appear several times; its items must carry consecutive
        nonces in list order starting at its stored nonce. Acceptance is
        atomic: every nonce advances or none does.

        Args:
            payloads: Payloads in submission order
            wallet_refs: Wallet of each payload
            signature: ``AggregateSignature`` (raw bytes are treated as one)

        Raises:
            MalformedInputError: On length mismatch, duplicate
                (payload, wallet) pairs, malformed inputs or unknown wallets
        """
        return self._authorize(payloads, wallet_refs, _as_aggregate(signature), commit=True)

    def _authorize(self, payloads: Sequence[Payload], wallet_refs: Sequence[WalletRef],
                   signature: Union[SingleSignature, AggregateSignature],
                   commit: bool) -> BatchVerificationResult:
        if len(payloads) != len(wallet_refs):
            raise MalformedInputError("Number of payloads and wallet references must be equal")
        if not payloads:
            raise MalformedInputError("Nothing to verify")
        for payload in payloads:
            if not isinstance(payload, Payload):
                raise MalformedInputError(f"Expected a Payload, got {type(payload).__name__}")

        wallets = [self.registry.resolve(ref) for ref in wallet_refs]
        messages = [payload.encode(self.domain) for payload in payloads]
        pairs = list(zip(messages, (w.public_key_hash for w in wallets)))
        if len(set(pairs)) != len(pairs):
            raise MalformedInputError("Duplicate (payload, wallet) pair in batch")
        signature = self._checked_signature(signature, len(payloads))

        entries = [(w.public_key_hash, p.nonce) for w, p in zip(wallets, payloads)]
        label = short_hex(wallets[0].public_key_hash) if len(wallets) == 1 else f"batch of {len(wallets)}"
        try:
            self._check_chain(payloads)
            next_nonces = self._check_nonces(entries)
            self._check_pairing(signature, wallets, messages)
            if commit:
                # Re-validated under the store lock; a concurrent winner shows up here
                next_nonces = self._check_nonces(entries, consume=True)
        except _Rejected as rejected:
            current = [self.nonce_store.get(key) for key, _ in entries]
            return self._reject_batch(rejected, current, label)

        if commit:
            self.logger.debug("Accepted %s", label)
        return BatchVerificationResult(accepted=[True] * len(payloads), next_nonces=next_nonces)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _checked_signature(signature: Union[SingleSignature, AggregateSignature],
                           count: int) -> Union[SingleSignature, AggregateSignature]:
        if not isinstance(signature, (SingleSignature, AggregateSignature)):
            raise MalformedInputError(f"Unsupported signature type {type(signature).__name__}")
        if isinstance(signature, SingleSignature) and count != 1:
            raise MalformedInputError("A single signature can only authorize one payload")
        # Malformed encodings raise here, before any check runs
        signature.point()
        return signature

    def _check_chain(self, payloads: Sequence[Payload]) -> None:
        for payload in payloads:
            if payload.chain_id != self.chain_id:
                raise _Rejected(
                    RejectReason.CHAIN_MISMATCH,
                    f"Expected chain id {self.chain_id}, got {payload.chain_id}",
                    expected=self.chain_id,
                    actual=payload.chain_id,
                )

    def _check_nonces(self, entries: List[Tuple[bytes, int]], consume: bool = False) -> List[int]:
        try:
            if consume:
                return self.nonce_store.consume_many(entries)
            return self.nonce_store.check_many(entries)
        except NonceMismatchError as e:
            raise _Rejected(RejectReason.NONCE_MISMATCH, str(e), expected=e.expected, actual=e.actual)

    def _check_pairing(self, signature: Union[SingleSignature, AggregateSignature],
                       wallets: Sequence[Wallet], messages: Sequence[bytes]) -> None:
        message_points = [hash_to_g1(message, self.domain) for message in messages]
        if isinstance(signature, SingleSignature):
            valid = signature.verifies(wallets[0].point, message_points[0])
        else:
            valid = signature.verifies([wallet.point for wallet in wallets], message_points)
        if not valid:
            raise _Rejected(RejectReason.SIGNATURE_INVALID)

    def _check_creation_payload(self, wallet: Wallet, payload: Payload) -> None:
        if not isinstance(payload, Payload):
            raise MalformedInputError(f"Expected a Payload, got {type(payload).__name__}")
        if payload.nonce != 0:
            raise MalformedInputError("Wallet creation payload must carry nonce 0")
        if payload.call_data_hash != hash_call_data(creation_call_data(wallet.public_key_hash)):
            raise MalformedInputError("Payload does not authorize creating this wallet")
        if self.gateway_address and payload.target != self.gateway_address:
            raise MalformedInputError("Wallet creation payload must target the verification gateway")

    def _reject_batch(self, rejected: _Rejected, next_nonces: List[int], label: str) -> BatchVerificationResult:
        rate_limited_log(
            f"Rejected {label}: {rejected.reason.value}",
            level="warning",
            logger_instance=self.logger,
        )
        return BatchVerificationResult(
            accepted=[False] * len(next_nonces),
            next_nonces=next_nonces,
            reason=rejected.reason,
            detail=rejected.detail,
            expected=rejected.expected,
            actual=rejected.actual,
        )


def _as_single(signature: SignatureInput) -> Union[SingleSignature, AggregateSignature]:
    if isinstance(signature, (SingleSignature, AggregateSignature)):
        return signature
    return SingleSignature(signature)


def _as_aggregate(signature: SignatureInput) -> Union[SingleSignature, AggregateSignature]:
    if isinstance(signature, (SingleSignature, AggregateSignature)):
        return signature
    return AggregateSignature(signature)


def _single(result: BatchVerificationResult) -> VerificationResult:
    return VerificationResult(
        accepted=result.accepted[0],
        next_nonce=result.next_nonces[0],
        reason=result.reason,
        detail=result.detail,
        expected=result.expected,
        actual=result.actual,
    )
