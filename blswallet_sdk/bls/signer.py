"""
BLS key derivation and signing.

Signing is deterministic: the message is hashed to G1 under a domain tag and
multiplied by the secret key. No per-signature randomness is involved.
"""
import logging
import secrets
from typing import Tuple, Union

from eth_utils import keccak
from py_ecc.optimized_bn128 import G2, is_inf, multiply

from ..exceptions import MalformedInputError
from .constants import CURVE_ORDER, DOMAIN, G2_POINT_SIZE, SECRET_KEY_MAX, SECRET_KEY_MIN
from .curve import (
    NEG_G2, deserialize_g1, deserialize_g2, hash_to_g1,
    pairing_check, serialize_g1, serialize_g2,
)

logger = logging.getLogger(__name__)

__all__ = [
    "BlsSigner",
    "generate_key",
    "derive_key",
    "public_key",
    "public_key_hash",
    "sign",
    "verify_signature",
]


def _check_secret_key(secret_key: int) -> int:
    if isinstance(secret_key, bool) or not isinstance(secret_key, int):
        raise MalformedInputError("Secret key must be an integer")
    if not SECRET_KEY_MIN <= secret_key <= SECRET_KEY_MAX:
        raise MalformedInputError("Secret key is outside the scalar field")
    return secret_key


def _check_message(message: bytes) -> bytes:
    if not isinstance(message, (bytes, bytearray)):
        raise MalformedInputError(f"Message must be bytes, got {type(message).__name__}")
    if len(message) == 0:
        raise MalformedInputError("Message must not be empty")
    return bytes(message)


def generate_key() -> Tuple[int, bytes]:
    """
    Generate a random BLS keypair.

    Returns:
        Tuple of (secret_key, public_key_bytes)
    """
    secret_key = secrets.randbelow(SECRET_KEY_MAX) + SECRET_KEY_MIN
    return secret_key, public_key(secret_key)


def derive_key(seed: Union[bytes, str]) -> int:
    """
    Derive a secret key deterministically from a seed.

    Args:
        seed: Seed bytes, a 0x-prefixed hex string or any other string (UTF-8)

    Returns:
        Secret key in ``[1, r)``

    Raises:
        MalformedInputError: If the seed is empty or hashes to zero mod r
    """
    if isinstance(seed, str):
        seed = bytes.fromhex(seed[2:]) if seed.startswith("0x") else seed.encode("utf-8")
    if not seed:
        raise MalformedInputError("Seed must not be empty")
    secret_key = int.from_bytes(keccak(seed), "big") % CURVE_ORDER
    if secret_key == 0:
        raise MalformedInputError("Seed derives the zero key")
    return secret_key


def public_key(secret_key: int) -> bytes:
    """Return the serialized G2 public key for a secret key"""
    return serialize_g2(multiply(G2, _check_secret_key(secret_key)))


def public_key_hash(public_key_bytes: bytes) -> bytes:
    """
    Compact wallet identifier: keccak256 of the serialized public key.

    Raises:
        MalformedInputError: If the key is not 128 bytes
    """
    if not isinstance(public_key_bytes, (bytes, bytearray)) or len(public_key_bytes) != G2_POINT_SIZE:
        raise MalformedInputError(f"Public key must be {G2_POINT_SIZE} bytes")
    return keccak(bytes(public_key_bytes))


def sign(secret_key: int, message: bytes, domain: bytes = DOMAIN) -> bytes:
    """
    Sign a message.

    Args:
        secret_key: Secret key in ``[1, r)``
        message: Bytes to sign, typically an encoded payload
        domain: Hash-to-curve domain tag

    Returns:
        64-byte serialized G1 signature
    """
    message = _check_message(message)
    point = hash_to_g1(message, domain)
    return serialize_g1(multiply(point, _check_secret_key(secret_key)))


def verify_signature(public_key_bytes: bytes, message: bytes, signature: bytes,
                     domain: bytes = DOMAIN) -> bool:
    """
    Check a single signature: ``e(sig, -G2) * e(H(m), pk) == 1``.

    Raises:
        MalformedInputError: If the key, message or signature is malformed
    """
    message = _check_message(message)
    pk_point = deserialize_g2(public_key_bytes)
    sig_point = deserialize_g1(signature)
    if is_inf(sig_point):
        return False
    return pairing_check([(NEG_G2, sig_point), (pk_point, hash_to_g1(message, domain))])


class BlsSigner:
    """A BLS secret key bound to a signing domain"""

    def __init__(self, secret_key: int, domain: bytes = DOMAIN):
        self._secret_key = _check_secret_key(secret_key)
        self.domain = domain
        self._public_key = public_key(self._secret_key)
        self._public_key_hash = public_key_hash(self._public_key)

    @classmethod
    def generate(cls, domain: bytes = DOMAIN) -> "BlsSigner":
        """Create a signer with a fresh random key"""
        secret_key, _ = generate_key()
        return cls(secret_key, domain)

    @classmethod
    def from_seed(cls, seed: Union[bytes, str], domain: bytes = DOMAIN) -> "BlsSigner":
        """Create a signer whose key is derived from ``seed``"""
        return cls(derive_key(seed), domain)

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def public_key_hash(self) -> bytes:
        return self._public_key_hash

    def secret_key_bytes(self) -> bytes:
        """Raw 32-byte secret key, for encrypted storage only"""
        return self._secret_key.to_bytes(32, "big")

    def sign(self, message: bytes) -> bytes:
        return sign(self._secret_key, message, self.domain)

    def sign_payload(self, payload) -> bytes:
        """Sign the canonical encoding of a ``Payload``"""
        return self.sign(payload.encode(self.domain))

    def __repr__(self) -> str:
        return f"BlsSigner(public_key_hash=0x{self._public_key_hash.hex()[:12]}…)"
