"""
Data models for the BLS Wallet SDK.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import (
    AuthorizationError,
    ChainMismatchError,
    NonceMismatchError,
    SignatureInvalidError,
)
from .utils import to_bytes_data


class RejectReason(str, Enum):
    """Why an authorization was rejected"""
    CHAIN_MISMATCH = "chain_mismatch"
    NONCE_MISMATCH = "nonce_mismatch"
    SIGNATURE_INVALID = "signature_invalid"


def _rejection_error(reason: RejectReason, detail: Optional[str],
                     expected: Optional[int], actual: Optional[int]) -> AuthorizationError:
    if reason == RejectReason.CHAIN_MISMATCH:
        return ChainMismatchError(detail or "Chain id mismatch", expected=expected, actual=actual)
    if reason == RejectReason.NONCE_MISMATCH:
        return NonceMismatchError(detail or "Nonce mismatch", expected=expected, actual=actual)
    return SignatureInvalidError("Signature verification failed")


class VerificationResult(BaseModel):
    """Outcome of verifying one operation"""
    model_config = ConfigDict(frozen=True)

    accepted: bool
    next_nonce: int
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None
    expected: Optional[int] = None
    actual: Optional[int] = None

    def raise_for_rejection(self) -> None:
        """
        Raise the typed error for a rejected result; do nothing otherwise.

        Raises:
            ChainMismatchError, NonceMismatchError or SignatureInvalidError
        """
        if not self.accepted:
            raise _rejection_error(self.reason, self.detail, self.expected, self.actual)


class BatchVerificationResult(BaseModel):
    """
    Outcome of verifying a batch.

    Acceptance is all-or-nothing, so ``accepted`` holds the same flag for
    every item. ``next_nonces`` holds the nonce each item's wallet expects
    next (after acceptance) or its current nonce (after rejection).
    """
    model_config = ConfigDict(frozen=True)

    accepted: List[bool]
    next_nonces: List[int]
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None
    expected: Optional[int] = None
    actual: Optional[int] = None

    @property
    def all_accepted(self) -> bool:
        return bool(self.accepted) and all(self.accepted)

    def raise_for_rejection(self) -> None:
        if not self.all_accepted:
            raise _rejection_error(
                self.reason or RejectReason.SIGNATURE_INVALID, self.detail, self.expected, self.actual
            )


class CallResult(BaseModel):
    """Result of applying one authorized call"""
    model_config = ConfigDict(frozen=True)

    success: bool
    return_data: bytes = b""
    error: Optional[str] = None


class SignedOperation(BaseModel):
    """
    A signed operation as exchanged with an aggregation service.

    Byte fields are carried as 0x-prefixed hex on the wire.
    """
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(..., alias="publicKey")
    chain_id: int = Field(..., alias="chainId")
    nonce: int
    reward: int = 0
    value: int = 0
    target: str = Field(..., alias="contractAddress")
    call_data: str = Field("0x", alias="encodedFunction")
    signature: str

    @field_validator("public_key", "call_data", "signature", mode="before")
    @classmethod
    def _normalize_hex(cls, v):
        return "0x" + to_bytes_data(v).hex()

    def to_wire(self) -> dict:
        """JSON body with decimal strings for uint256 fields"""
        data = self.model_dump(by_alias=True)
        for key in ("chainId", "nonce", "reward", "value"):
            data[key] = str(data[key])
        return data
