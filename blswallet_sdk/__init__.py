"""
BLS Wallet SDK - BLS signature aggregation for smart-contract wallets.
"""
from .version import __version__
from .exceptions import (
    BLSWalletError,
    MalformedInputError,
    UnknownWalletError,
    AlreadyRegisteredError,
    AuthorizationError,
    ChainMismatchError,
    NonceMismatchError,
    SignatureInvalidError,
    ExecutionFailure,
    AggregatorError,
)
from .models import RejectReason, VerificationResult, BatchVerificationResult, CallResult, SignedOperation
from .config import NetworkConfig
from .bls import (
    DOMAIN,
    BlsSigner,
    aggregate_signatures,
    aggregate_public_keys,
    verify_aggregate,
)
from .wallet import (
    Payload,
    encode_payload,
    decode_payload,
    creation_payload,
    NonceStore,
    WalletRegistry,
    AuthorizationVerifier,
    SingleSignature,
    AggregateSignature,
    BatchDispatcher,
)
from .execution import InMemoryLedger, Web3CallSimulator
from .aggregator import AggregatorClient

__all__ = [
    "__version__",
    "BLSWalletError",
    "MalformedInputError",
    "UnknownWalletError",
    "AlreadyRegisteredError",
    "AuthorizationError",
    "ChainMismatchError",
    "NonceMismatchError",
    "SignatureInvalidError",
    "ExecutionFailure",
    "AggregatorError",
    "RejectReason",
    "VerificationResult",
    "BatchVerificationResult",
    "CallResult",
    "SignedOperation",
    "NetworkConfig",
    "DOMAIN",
    "BlsSigner",
    "aggregate_signatures",
    "aggregate_public_keys",
    "verify_aggregate",
    "Payload",
    "encode_payload",
    "decode_payload",
    "creation_payload",
    "NonceStore",
    "WalletRegistry",
    "AuthorizationVerifier",
    "SingleSignature",
    "AggregateSignature",
    "BatchDispatcher",
    "InMemoryLedger",
    "Web3CallSimulator",
    "AggregatorClient",
]
