"""
BLS signatures over BN254.

Signatures live on G1 (64 bytes), public keys on G2 (128 bytes).
"""
from .constants import DOMAIN, CURVE_ORDER, FIELD_MODULUS
from .signer import (
    BlsSigner, generate_key, derive_key, public_key, public_key_hash,
    sign, verify_signature,
)
from .aggregate import (
    aggregate_signatures, aggregate_public_keys, verify_aggregate, verify_same_message,
)

__all__ = [
    "DOMAIN",
    "CURVE_ORDER",
    "FIELD_MODULUS",
    "BlsSigner",
    "generate_key",
    "derive_key",
    "public_key",
    "public_key_hash",
    "sign",
    "verify_signature",
    "aggregate_signatures",
    "aggregate_public_keys",
    "verify_aggregate",
    "verify_same_message",
]
