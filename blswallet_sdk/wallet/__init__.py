"""
Wallet authorization: payloads, nonces, verification and dispatch.
"""
from .payload import (
    Payload, PAYLOAD_SIZE, encode_payload, decode_payload, hash_call_data,
    creation_call_data, creation_payload,
)
from .nonce_store import NonceStore
from .registry import Wallet, WalletRegistry
from .verifier import AuthorizationVerifier, SingleSignature, AggregateSignature
from .dispatcher import BatchDispatcher

__all__ = [
    "Payload",
    "PAYLOAD_SIZE",
    "encode_payload",
    "decode_payload",
    "hash_call_data",
    "creation_call_data",
    "creation_payload",
    "NonceStore",
    "Wallet",
    "WalletRegistry",
    "AuthorizationVerifier",
    "SingleSignature",
    "AggregateSignature",
    "BatchDispatcher",
]
