"""
Signature and public key aggregation.

Aggregation is plain group addition, so it is commutative and associative.
It never looks at which payload or wallet a signature belongs to; binding each
signature to its (message, key) pair is left to the verifier.
"""
import logging
from typing import Sequence

from py_ecc.optimized_bn128 import is_inf

from ..exceptions import MalformedInputError
from .constants import DOMAIN, G1_POINT_SIZE
from .curve import (
    NEG_G2, deserialize_g1, deserialize_g2, hash_to_g1,
    pairing_check, serialize_g1, serialize_g2, sum_points,
)

logger = logging.getLogger(__name__)

__all__ = [
    "aggregate_signatures",
    "aggregate_public_keys",
    "verify_aggregate",
    "verify_same_message",
]


def aggregate_signatures(signatures: Sequence[bytes], allow_empty: bool = False) -> bytes:
    """
    Sum signatures into one aggregate signature.

    Args:
        signatures: Serialized G1 signatures (single or already aggregated)
        allow_empty: Return the all-zero encoding for an empty list instead of
            raising; the caller must then treat it as "no signatures"

    Returns:
        64-byte aggregate signature

    Raises:
        MalformedInputError: On an empty list (unless allowed) or a malformed signature
    """
    if not signatures:
        if allow_empty:
            return bytes(G1_POINT_SIZE)
        raise MalformedInputError("Cannot aggregate an empty list of signatures")
    points = [deserialize_g1(signature) for signature in signatures]
    logger.debug("Aggregating %d signatures", len(points))
    return serialize_g1(sum_points(points))


def aggregate_public_keys(public_keys: Sequence[bytes]) -> bytes:
    """
    Sum public keys into one aggregate key.

    Only meaningful for checking signatures that all cover the same message.

    Raises:
        MalformedInputError: On an empty list, a malformed key or a sum that is
            the point at infinity
    """
    if not public_keys:
        raise MalformedInputError("Cannot aggregate an empty list of public keys")
    total = sum_points([deserialize_g2(pk) for pk in public_keys])
    if is_inf(total):
        raise MalformedInputError("Aggregate public key is the point at infinity")
    return serialize_g2(total)


def verify_aggregate(public_keys: Sequence[bytes], messages: Sequence[bytes],
                     signature: bytes, domain: bytes = DOMAIN) -> bool:
    """
    Verify an aggregate signature over (message, public key) pairs.

    The check is ``e(sig, -G2) * prod(e(H(m_i), pk_i)) == 1``. Pairs must be
    distinct; a repeated pair would let one signature count twice, so callers
    that accept untrusted lists must reject duplicates first.

    Raises:
        MalformedInputError: If the lists differ in length, are empty or hold
            malformed entries
    """
    if len(public_keys) != len(messages):
        raise MalformedInputError("Number of public keys and messages must be equal")
    if not public_keys:
        raise MalformedInputError("Nothing to verify")
    sig_point = deserialize_g1(signature)
    if is_inf(sig_point):
        return False
    pairs = [(NEG_G2, sig_point)]
    for pk, message in zip(public_keys, messages):
        if not message:
            raise MalformedInputError("Message must not be empty")
        pairs.append((deserialize_g2(pk), hash_to_g1(bytes(message), domain)))
    return pairing_check(pairs)


def verify_same_message(public_keys: Sequence[bytes], message: bytes,
                        signature: bytes, domain: bytes = DOMAIN) -> bool:
    """
    Verify an aggregate signature where every signer signed ``message``.

    Uses the aggregated public key, so only two pairings are needed.
    """
    if not message:
        raise MalformedInputError("Message must not be empty")
    aggregate_key = deserialize_g2(aggregate_public_keys(public_keys))
    sig_point = deserialize_g1(signature)
    if is_inf(sig_point):
        return False
    return pairing_check([(NEG_G2, sig_point), (aggregate_key, hash_to_g1(bytes(message), domain))])
