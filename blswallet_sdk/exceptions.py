"""
Exceptions for the BLS Wallet SDK.
"""
from typing import Optional


class BLSWalletError(Exception):
    """Base exception for all BLS Wallet SDK errors"""
    pass


class MalformedInputError(BLSWalletError, ValueError):
    """Raised when an input has the wrong length, shape or encoding.

    Always raised before any state change.
    """
    pass


class UnknownWalletError(MalformedInputError):
    """Raised when a wallet reference does not resolve to a registered wallet"""
    pass


class AlreadyRegisteredError(MalformedInputError):
    """Raised when registering a public key that already has a wallet"""
    pass


class AuthorizationError(BLSWalletError):
    """Base class for rejected authorizations"""
    pass


class ChainMismatchError(AuthorizationError):
    """Raised when a payload was signed for a different chain"""

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class NonceMismatchError(AuthorizationError):
    """Raised when a payload nonce is stale or from the future.

    Callers should refetch the wallet's current nonce and retry.
    """

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class SignatureInvalidError(AuthorizationError):
    """Raised when the pairing check fails.

    The cause (wrong key, tampered payload, foreign domain) is never reported.
    """
    pass


class ExecutionFailure(BLSWalletError):
    """Raised by an executor when an authorized call could not be applied"""

    def __init__(self, message: str, return_data: bytes = b""):
        self.return_data = return_data
        super().__init__(message)


class AggregatorError(BLSWalletError):
    """Raised when the remote aggregation service fails or rejects a request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
