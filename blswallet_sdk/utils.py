"""
Utility functions for the BLS Wallet SDK.
"""
import urllib.parse
from typing import Union

from eth_utils import decode_hex, is_address, keccak, to_checksum_address

from .exceptions import MalformedInputError

BytesLike = Union[bytes, bytearray, str]


def to_bytes_data(value: BytesLike, name: str = "value") -> bytes:
    """
    Convert bytes or a hex string (with or without 0x) to bytes.

    Args:
        value: Bytes or hex string
        name: Field name used in error messages

    Returns:
        The raw bytes

    Raises:
        MalformedInputError: If the value is neither bytes nor valid hex
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return decode_hex(value)
        except (ValueError, TypeError) as e:
            raise MalformedInputError(f"{name} is not valid hex: {e}")
    raise MalformedInputError(f"{name} must be bytes or a hex string, got {type(value).__name__}")


def keccak256(data: BytesLike) -> bytes:
    """keccak256 digest of bytes or hex-encoded data"""
    return keccak(to_bytes_data(data, "data"))


def normalize_address(address: Union[str, bytes]) -> str:
    """
    Return the checksummed form of an address.

    Raises:
        MalformedInputError: If the value is not a 20-byte address
    """
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 20:
            raise MalformedInputError(f"Address must be 20 bytes, got {len(address)}")
        return to_checksum_address(bytes(address))
    if not isinstance(address, str) or not is_address(address):
        raise MalformedInputError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def short_hex(data: bytes, length: int = 10) -> str:
    """Truncated hex for log messages"""
    return "0x" + bytes(data).hex()[:length] + "…"


def require_secure_url(url: str, url_name: str = "url") -> str:
    """
    Check that a URL uses https, except for localhost and 127.0.0.1.

    Raises:
        ValueError: If a remote URL does not use https
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.netloc.split(':')[0] if parsed.netloc else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ValueError(f"{url_name} must use https:// for security (got: {parsed.scheme}://)")
    return url
