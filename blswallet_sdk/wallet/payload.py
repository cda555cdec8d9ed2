"""
Payload codec: the exact bytes a wallet owner signs.

Layout (212 bytes, big-endian, no padding between fields)::

    domain(32) || chainId(32) || nonce(32) || reward(32) || value(32) ||
    target(20) || keccak256(callData)(32)

Every field is fixed width, so the encoding is injective. Call data is
committed through its hash, which keeps the signed message the same size
whatever the call.
"""
from typing import Union

from eth_abi.packed import encode_packed
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address
from pydantic import BaseModel, ConfigDict, field_validator

from ..bls.constants import DOMAIN
from ..exceptions import MalformedInputError
from ..utils import BytesLike, normalize_address, to_bytes_data

UINT256_MAX = 2 ** 256 - 1
PAYLOAD_SIZE = 212

_PACKED_TYPES = ["bytes32", "uint256", "uint256", "uint256", "uint256", "address", "bytes32"]

# Call made by the creation payload; the gateway checks it carries the key hash
WALLET_CROSS_CHECK_SELECTOR = function_signature_to_4byte_selector("walletCrossCheck(bytes32)")

__all__ = [
    "Payload",
    "PAYLOAD_SIZE",
    "encode_payload",
    "decode_payload",
    "hash_call_data",
    "creation_call_data",
    "creation_payload",
]


def hash_call_data(call_data: BytesLike) -> bytes:
    """keccak256 of the full call data"""
    return keccak(to_bytes_data(call_data, "call_data"))


class Payload(BaseModel):
    """One authorized operation. Immutable."""
    model_config = ConfigDict(frozen=True)

    chain_id: int
    nonce: int
    reward: int = 0
    value: int = 0
    target: str
    call_data_hash: bytes

    @field_validator("chain_id", "nonce", "reward", "value")
    @classmethod
    def _check_uint256(cls, v: int) -> int:
        if v < 0 or v > UINT256_MAX:
            raise ValueError("must be an unsigned 256-bit integer")
        return v

    @field_validator("target", mode="before")
    @classmethod
    def _check_target(cls, v):
        return normalize_address(v)

    @field_validator("call_data_hash", mode="before")
    @classmethod
    def _check_call_data_hash(cls, v):
        v = to_bytes_data(v, "call_data_hash")
        if len(v) != 32:
            raise ValueError("call_data_hash must be 32 bytes")
        return v

    @classmethod
    def for_call(
        cls,
        chain_id: int,
        nonce: int,
        target: Union[str, bytes],
        call_data: BytesLike = b"",
        reward: int = 0,
        value: int = 0,
    ) -> "Payload":
        """Build a payload committing to ``call_data``"""
        return cls(
            chain_id=chain_id,
            nonce=nonce,
            reward=reward,
            value=value,
            target=target,
            call_data_hash=hash_call_data(call_data),
        )

    def matches_call_data(self, call_data: BytesLike) -> bool:
        return hash_call_data(call_data) == self.call_data_hash

    def encode(self, domain: bytes = DOMAIN) -> bytes:
        """
        Encode the payload for signing.

        Raises:
            MalformedInputError: If the domain separator is not 32 bytes
        """
        if not isinstance(domain, (bytes, bytearray)) or len(domain) != 32:
            raise MalformedInputError("Domain separator must be 32 bytes")
        return encode_packed(
            _PACKED_TYPES,
            [
                bytes(domain),
                self.chain_id,
                self.nonce,
                self.reward,
                self.value,
                self.target,
                self.call_data_hash,
            ],
        )


def encode_payload(
    chain_id: int,
    nonce: int,
    reward: int,
    value: int,
    target: Union[str, bytes],
    call_data: BytesLike,
    domain: bytes = DOMAIN,
) -> bytes:
    """Encode an operation from its full call data"""
    payload = Payload.for_call(chain_id, nonce, target, call_data, reward=reward, value=value)
    return payload.encode(domain)


def decode_payload(data: BytesLike, domain: bytes = DOMAIN) -> Payload:
    """
    Decode a signed-message encoding back into a ``Payload``.

    Raises:
        MalformedInputError: If the length is wrong or the domain separator
            does not match
    """
    data = to_bytes_data(data, "payload")
    if len(data) != PAYLOAD_SIZE:
        raise MalformedInputError(f"Encoded payload must be {PAYLOAD_SIZE} bytes, got {len(data)}")
    if data[:32] != bytes(domain):
        raise MalformedInputError("Encoded payload has a foreign domain separator")

    def word(i: int) -> int:
        start = 32 + 32 * i
        return int.from_bytes(data[start:start + 32], "big")

    return Payload(
        chain_id=word(0),
        nonce=word(1),
        reward=word(2),
        value=word(3),
        target=to_checksum_address(data[160:180]),
        call_data_hash=data[180:212],
    )


def creation_call_data(public_key_hash: bytes) -> bytes:
    """Call data of ``walletCrossCheck(bytes32)`` for a public key hash"""
    public_key_hash = to_bytes_data(public_key_hash, "public_key_hash")
    if len(public_key_hash) != 32:
        raise MalformedInputError("Public key hash must be 32 bytes")
    return WALLET_CROSS_CHECK_SELECTOR + public_key_hash


def creation_payload(chain_id: int, gateway_address: Union[str, bytes], public_key_hash: bytes) -> Payload:
    """The nonce-0 payload that authorizes creating a wallet for a key"""
    return Payload.for_call(chain_id, 0, gateway_address, creation_call_data(public_key_hash))
